"""
Read-only inspection of the job queue.
"""

from dataclasses import dataclass

from sqlalchemy import func, select

from pgcoord.db.connection import ConnectionProvider
from pgcoord.db.models import JobQueueItem
from pgcoord.observability.metrics import get_metrics


@dataclass(frozen=True)
class QueueCounts:
    """Item counts for one queue."""

    enqueued: int
    fetched: int

    @property
    def total(self) -> int:
        return self.enqueued + self.fetched


class JobQueueMonitor:
    """
    Queries for dashboards and operators.

    "Enqueued" items have never been claimed (or were requeued); "fetched"
    items carry a claim timestamp, stale or not.
    """

    def __init__(self, provider: ConnectionProvider):
        self._provider = provider

    async def get_queues(self) -> list[str]:
        """Get the distinct queue names currently holding items, sorted."""
        stmt = select(JobQueueItem.queue).distinct().order_by(JobQueueItem.queue)
        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(stmt)
            return list(result.scalars().all())

    async def get_enqueued_job_ids(self, queue: str, offset: int = 0, limit: int = 20) -> list[str]:
        """
        Get job ids of unclaimed items, oldest first.

        Args:
            queue: Queue name.
            offset: Number of items to skip.
            limit: Maximum number of ids to return.
        """
        return await self._get_job_ids(queue, JobQueueItem.fetchedat.is_(None), offset, limit)

    async def get_fetched_job_ids(self, queue: str, offset: int = 0, limit: int = 20) -> list[str]:
        """
        Get job ids of claimed items, oldest first.

        Args:
            queue: Queue name.
            offset: Number of items to skip.
            limit: Maximum number of ids to return.
        """
        return await self._get_job_ids(queue, JobQueueItem.fetchedat.is_not(None), offset, limit)

    async def get_queue_counts(self, queue: str) -> QueueCounts:
        """
        Count enqueued and fetched items in a queue and publish them as gauges.

        Args:
            queue: Queue name.

        Returns:
            QueueCounts: The counts.
        """
        stmt = select(
            func.count().filter(JobQueueItem.fetchedat.is_(None)),
            func.count().filter(JobQueueItem.fetchedat.is_not(None)),
        ).where(JobQueueItem.queue == queue)

        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(stmt)
            enqueued, fetched = result.one()

        counts = QueueCounts(enqueued=enqueued or 0, fetched=fetched or 0)
        get_metrics().update_queue_depth(queue, counts.enqueued, counts.fetched)
        return counts

    async def _get_job_ids(self, queue: str, state_filter, offset: int, limit: int) -> list[str]:
        stmt = (
            select(JobQueueItem.jobid)
            .where(JobQueueItem.queue == queue, state_filter)
            .order_by(JobQueueItem.id)
            .offset(offset)
            .limit(limit)
        )
        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(stmt)
            return list(result.scalars().all())
