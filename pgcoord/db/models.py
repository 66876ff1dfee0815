"""
SQLAlchemy database models.
Defines the lock and job queue tables.

Tables are declared without a schema. The configured schema is applied at
runtime through ``schema_translate_map`` (see ``ConnectionProvider``).
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Identity, Index, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pgcoord.constants import JOB_QUEUE_TABLE, LOCK_TABLE


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Lock(Base):
    """
    One row per currently held distributed lock.

    The row's existence is the lock: the primary key on ``resource``
    guarantees at most one holder per resource.
    """

    __tablename__ = LOCK_TABLE

    resource: Mapped[str] = mapped_column(Text, primary_key=True)
    acquired: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"Lock(resource={self.resource!r}, acquired={self.acquired})"


class JobQueueItem(Base):
    """
    One row per enqueued or in-flight queue item.

    ``fetchedat`` is null while the item is unclaimed and holds the claim
    time once a consumer has dequeued it.
    """

    __tablename__ = JOB_QUEUE_TABLE

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )
    jobid: Mapped[str] = mapped_column(Text, nullable=False)
    queue: Mapped[str] = mapped_column(Text, nullable=False)
    fetchedat: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # Index for the eligibility scan in dequeue
        Index("ix_jobqueue_queue_fetchedat", "queue", "fetchedat"),
    )

    def __repr__(self) -> str:
        return (
            f"JobQueueItem(id={self.id}, jobid={self.jobid!r}, "
            f"queue={self.queue!r}, fetchedat={self.fetchedat})"
        )
