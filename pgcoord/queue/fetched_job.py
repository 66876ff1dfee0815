"""
Handle for a claimed queue item.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, update

from pgcoord.db.connection import ConnectionProvider
from pgcoord.db.models import JobQueueItem
from pgcoord.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class FetchedJob:
    """
    A queue item claimed by ``JobQueue.dequeue``.

    The row stays in the queue until the owner calls ``remove_from_queue``
    after the work is durably processed. If the consumer dies first, the
    claim goes stale after the invisibility timeout and the item is
    delivered again.
    """

    id: int
    job_id: str
    queue: str
    fetched_at: datetime
    _provider: ConnectionProvider = field(repr=False, compare=False)
    _completed: bool = field(default=False, repr=False, compare=False)

    @property
    def is_completed(self) -> bool:
        """True once the item was removed or requeued through this handle."""
        return self._completed

    async def remove_from_queue(self) -> bool:
        """
        Delete the item's row. Terminal.

        Returns:
            True if the row was deleted, False if it was already gone or
            this handle was completed before.
        """
        if self._completed:
            return False

        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(
                delete(JobQueueItem).where(JobQueueItem.id == self.id)
            )
        self._completed = True

        removed = result.rowcount > 0
        if removed:
            get_metrics().record_job_removed(self.queue)
        logger.debug(
            "Removed job from queue",
            extra={"queue_item_id": self.id, "job_id": self.job_id, "removed": removed},
        )
        return removed

    async def requeue(self) -> bool:
        """
        Clear the claim so the item is immediately eligible again.

        Returns:
            True if the row was updated, False if it was already gone or
            this handle was completed before.
        """
        if self._completed:
            return False

        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(
                update(JobQueueItem)
                .where(JobQueueItem.id == self.id)
                .values(fetchedat=None)
            )
        self._completed = True

        requeued = result.rowcount > 0
        if requeued:
            get_metrics().record_job_requeued(self.queue)
        logger.info(
            "Requeued job",
            extra={"queue_item_id": self.id, "job_id": self.job_id, "requeued": requeued},
        )
        return requeued
