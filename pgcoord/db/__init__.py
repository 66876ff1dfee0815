"""
Database module.
Contains connection management and table models.
"""

from pgcoord.db.connection import (
    ConnectionProvider,
    close_db,
    get_connection_provider,
    get_engine,
    init_db,
)
from pgcoord.db.models import Base, JobQueueItem, Lock

__all__ = [
    "ConnectionProvider",
    "get_connection_provider",
    "get_engine",
    "init_db",
    "close_db",
    "Base",
    "Lock",
    "JobQueueItem",
]
