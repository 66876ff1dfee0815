"""
Polling job queue on top of the ``jobqueue`` table.

Consumers claim items with ``UPDATE ... WHERE id = (SELECT ... FOR UPDATE
SKIP LOCKED)``, so two concurrent dequeues never land on the same row.
A claim is a timestamp, not a deletion: items whose claim is older than
the invisibility timeout are eligible again, which gives at-least-once
delivery across consumer crashes.
"""

import asyncio
import logging
from collections.abc import Sequence

from sqlalchemy import insert, text

from pgcoord.config import StorageOptions
from pgcoord.constants import JOB_QUEUE_TABLE, SPAN_DEQUEUE_JOB, SPAN_ENQUEUE_JOB
from pgcoord.db.connection import ConnectionProvider
from pgcoord.db.models import JobQueueItem
from pgcoord.exceptions import InvalidArgumentError, OperationCanceledError
from pgcoord.observability.metrics import get_metrics
from pgcoord.observability.tracing import get_tracer
from pgcoord.queue.fetched_job import FetchedJob

logger = logging.getLogger(__name__)


def cancel_after(delay: float) -> asyncio.Event:
    """
    Create an event that is set ``delay`` seconds from now.

    Must be called from a running event loop.
    """
    event = asyncio.Event()
    asyncio.get_running_loop().call_later(delay, event.set)
    return event


class JobQueue:
    """
    Queue of opaque job ids grouped by queue name.

    Stateless apart from the store: any number of instances, in any number
    of processes, can enqueue and dequeue against the same tables.
    """

    def __init__(self, provider: ConnectionProvider, options: StorageOptions | None = None):
        """
        Initialize the queue.

        Args:
            provider: Source of scoped connections.
            options: Storage options. Defaults to the provider's options.
        """
        self._provider = provider
        self._options = options or provider.options
        self._metrics = get_metrics()

        schema = self._options.schema_name
        # Oldest eligible row first; rows locked by concurrent claimants are skipped
        self._claim_sql = text(f"""
            UPDATE "{schema}"."{JOB_QUEUE_TABLE}"
            SET fetchedat = now()
            WHERE id = (
                SELECT id FROM "{schema}"."{JOB_QUEUE_TABLE}"
                WHERE queue = ANY(:queues)
                AND (
                    fetchedat IS NULL
                    OR fetchedat < now() - CAST(:invisibility_timeout AS interval)
                )
                ORDER BY id
                LIMIT 1
                FOR UPDATE SKIP LOCKED
            )
            RETURNING id, jobid, queue, fetchedat
        """)

    async def enqueue(self, queue: str, job_id: str | int) -> None:
        """
        Add a job to a queue.

        Duplicate enqueues of the same job create independent items.

        Args:
            queue: Queue name.
            job_id: Opaque job reference, stored as text.

        Raises:
            InvalidArgumentError: If the queue name is empty.
        """
        if not isinstance(queue, str) or not queue:
            raise InvalidArgumentError("queue", "must be a non-empty string")

        with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
            span.set_attribute("queue.name", queue)

            async with self._provider.acquire_connection() as connection:
                await connection.execute(
                    insert(JobQueueItem).values(jobid=str(job_id), queue=queue)
                )

        self._metrics.record_job_enqueued(queue)
        logger.debug("Enqueued job", extra={"queue": queue, "job_id": str(job_id)})

    async def dequeue(
        self,
        queues: Sequence[str],
        cancellation: asyncio.Event | None = None,
    ) -> FetchedJob:
        """
        Claim the oldest eligible item from any of the given queues.

        Blocks until an item is claimed. Between polls it waits on the
        cancellation event, so setting the event ends the wait at once.
        Without an event the wait is unbounded (task cancellation still works).

        Args:
            queues: Queue names to claim from.
            cancellation: Optional event that cancels the wait when set.

        Returns:
            FetchedJob: The claimed item.

        Raises:
            InvalidArgumentError: If ``queues`` is None, empty, or not a
                sequence of non-empty strings.
            OperationCanceledError: If the cancellation event is set.
        """
        queue_names = self._validate_queues(queues)

        if cancellation is not None and cancellation.is_set():
            raise OperationCanceledError("Dequeue was canceled before it started")

        poll_interval = self._options.queue_poll_interval.total_seconds()

        with get_tracer().start_as_current_span(SPAN_DEQUEUE_JOB) as span:
            span.set_attribute("queue.names", queue_names)
            polls = 0

            while True:
                polls += 1
                fetched = await self._try_claim(queue_names)

                if fetched is not None:
                    span.set_attribute("queue.polls", polls)
                    self._metrics.record_job_dequeued(fetched.queue)
                    logger.debug(
                        "Dequeued job",
                        extra={
                            "queue": fetched.queue,
                            "job_id": fetched.job_id,
                            "queue_item_id": fetched.id,
                        },
                    )
                    return fetched

                await self._wait(cancellation, poll_interval)

                if cancellation is not None and cancellation.is_set():
                    span.set_attribute("queue.polls", polls)
                    logger.debug(
                        "Dequeue canceled while waiting",
                        extra={"queues": queue_names, "polls": polls},
                    )
                    raise OperationCanceledError("Dequeue was canceled while waiting for a job")

    async def _try_claim(self, queue_names: list[str]) -> FetchedJob | None:
        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(
                self._claim_sql,
                {
                    "queues": queue_names,
                    "invisibility_timeout": self._options.invisibility_timeout,
                },
            )
            row = result.one_or_none()

        if row is None:
            return None

        return FetchedJob(
            id=row.id,
            job_id=row.jobid,
            queue=row.queue,
            fetched_at=row.fetchedat,
            _provider=self._provider,
        )

    @staticmethod
    async def _wait(cancellation: asyncio.Event | None, poll_interval: float) -> None:
        if cancellation is None:
            await asyncio.sleep(poll_interval)
            return

        try:
            await asyncio.wait_for(cancellation.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            # Poll interval elapsed without cancellation
            return

    @staticmethod
    def _validate_queues(queues: Sequence[str] | None) -> list[str]:
        if queues is None:
            raise InvalidArgumentError("queues", "must not be None")
        if isinstance(queues, str):
            raise InvalidArgumentError("queues", "must be a collection of queue names, not a string")

        queue_names = list(queues)
        if not queue_names:
            raise InvalidArgumentError("queues", "must contain at least one queue name")
        if not all(isinstance(name, str) and name for name in queue_names):
            raise InvalidArgumentError("queues", "queue names must be non-empty strings")

        return queue_names
