"""
PostgreSQL Coordination Primitives

A lease-based distributed lock and a polling job queue that rely only on
PostgreSQL's own atomicity: conditional inserts, row locks with SKIP LOCKED,
and conditional deletes.
"""

__version__ = "1.0.0"

from pgcoord.config import Settings, StorageOptions, get_settings  # noqa: E402
from pgcoord.constants import LockState  # noqa: E402
from pgcoord.db.connection import ConnectionProvider  # noqa: E402
from pgcoord.exceptions import (  # noqa: E402
    CoordinationError,
    InvalidArgumentError,
    LockNotHeldError,
    LockTimeoutError,
    OperationCanceledError,
)
from pgcoord.lock import DistributedLock, distributed_lock  # noqa: E402
from pgcoord.queue import (  # noqa: E402
    FetchedJob,
    JobQueue,
    JobQueueMonitor,
    QueueCounts,
    cancel_after,
)

__all__ = [
    "__version__",
    "Settings",
    "StorageOptions",
    "get_settings",
    "LockState",
    "ConnectionProvider",
    "CoordinationError",
    "InvalidArgumentError",
    "LockNotHeldError",
    "LockTimeoutError",
    "OperationCanceledError",
    "DistributedLock",
    "distributed_lock",
    "JobQueue",
    "FetchedJob",
    "JobQueueMonitor",
    "QueueCounts",
    "cancel_after",
]
