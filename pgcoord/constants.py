"""
Application constants.
Centralized location for all constant values used across the library.
"""

from enum import StrEnum


class LockState(StrEnum):
    """
    Distributed lock lifecycle states.

    State transitions:
    - UNACQUIRED -> HELD (conditional insert succeeded)
    - UNACQUIRED -> FAILED (acquisition timed out or was canceled)
    - HELD -> RELEASED (release deleted the row)
    - HELD -> LOST (release found the row gone - lease reclaimed by a contender)
    """

    UNACQUIRED = "unacquired"
    HELD = "held"
    RELEASED = "released"
    LOST = "lost"
    FAILED = "failed"


# Table names
LOCK_TABLE = "lock"
JOB_QUEUE_TABLE = "jobqueue"

# Default values
DEFAULT_SCHEMA_NAME = "pgcoord"
DEFAULT_LOCK_TIMEOUT_SECONDS = 600.0
DEFAULT_INVISIBILITY_TIMEOUT_SECONDS = 1800.0
DEFAULT_QUEUE_POLL_INTERVAL_SECONDS = 15.0
DEFAULT_BACKOFF_INITIAL_MS = 50
DEFAULT_BACKOFF_CAP_MS = 1000

# Metrics names
METRIC_LOCKS_ACQUIRED = "locks_acquired_total"
METRIC_LOCK_TIMEOUTS = "lock_timeouts_total"
METRIC_LOCKS_RECLAIMED = "locks_reclaimed_total"
METRIC_LOCKS_LOST = "locks_lost_total"
METRIC_LOCK_WAIT = "lock_wait_seconds"
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_DEQUEUED = "jobs_dequeued_total"
METRIC_JOBS_REMOVED = "jobs_removed_total"
METRIC_JOBS_REQUEUED = "jobs_requeued_total"
METRIC_QUEUE_DEPTH = "job_queue_depth"

# Trace span names
SPAN_ACQUIRE_LOCK = "acquire_lock"
SPAN_RELEASE_LOCK = "release_lock"
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_DEQUEUE_JOB = "dequeue_job"
