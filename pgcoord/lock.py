"""
Lease-based distributed lock.

The lock is a row in the ``lock`` table. Acquiring it is an
``INSERT ... ON CONFLICT DO NOTHING``: the primary key on ``resource`` lets
exactly one inserter win per contention round. Rows older than the lease
timeout belong to dead holders and are deleted by the next contender.

The reclaim and the insert are separate statements, so this is a lease,
not a fencing lock: a holder that outlives its lease may briefly overlap
with the contender that reclaimed it. It finds out when its own release
raises ``LockNotHeldError``.
"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from types import TracebackType

from sqlalchemy import text

from pgcoord.backoff import Backoff
from pgcoord.config import StorageOptions
from pgcoord.constants import LOCK_TABLE, SPAN_ACQUIRE_LOCK, SPAN_RELEASE_LOCK, LockState
from pgcoord.db.connection import ConnectionProvider
from pgcoord.exceptions import (
    InvalidArgumentError,
    LockNotHeldError,
    LockTimeoutError,
    OperationCanceledError,
)
from pgcoord.observability.metrics import get_metrics
from pgcoord.observability.tracing import get_tracer

logger = logging.getLogger(__name__)


class DistributedLock:
    """
    Exclusive lease on a named resource.

    Use it as an async context manager to guarantee release on every exit
    path, or call ``acquire``/``release`` directly::

        async with DistributedLock("recurring-jobs", timedelta(seconds=30), provider):
            ...
    """

    def __init__(
        self,
        resource: str,
        timeout: timedelta,
        provider: ConnectionProvider,
        options: StorageOptions | None = None,
    ):
        """
        Initialize the lock. No store access happens here.

        Args:
            resource: Name of the protected resource.
            timeout: Total time budget for acquisition, retries included.
            provider: Source of scoped connections.
            options: Storage options. Defaults to the provider's options.

        Raises:
            InvalidArgumentError: If the resource is empty or the timeout negative.
        """
        if not isinstance(resource, str) or not resource:
            raise InvalidArgumentError("resource", "must be a non-empty string")
        if timeout < timedelta(0):
            raise InvalidArgumentError("timeout", "must not be negative")

        self.resource = resource
        self.timeout = timeout
        self.state = LockState.UNACQUIRED
        self.acquired_at: datetime | None = None

        self._provider = provider
        self._options = options or provider.options
        self._detached = False
        self._metrics = get_metrics()

        schema = self._options.schema_name
        self._reclaim_sql = text(f"""
            DELETE FROM "{schema}"."{LOCK_TABLE}"
            WHERE resource = :resource
            AND acquired < now() - CAST(:lease_timeout AS interval)
        """)
        self._insert_sql = text(f"""
            INSERT INTO "{schema}"."{LOCK_TABLE}" (resource, acquired)
            VALUES (:resource, now())
            ON CONFLICT (resource) DO NOTHING
            RETURNING acquired
        """)
        self._release_sql = text(f"""
            DELETE FROM "{schema}"."{LOCK_TABLE}"
            WHERE resource = :resource
        """)

    @property
    def is_held(self) -> bool:
        return self.state == LockState.HELD

    async def acquire(self, cancellation: asyncio.Event | None = None) -> "DistributedLock":
        """
        Acquire the lock, retrying with jittered backoff until the timeout.

        Args:
            cancellation: Optional event; when set, acquisition stops before
                the next attempt.

        Returns:
            This lock, now held.

        Raises:
            InvalidArgumentError: If this lock object was already used.
            LockTimeoutError: If the timeout elapsed without winning the insert.
            OperationCanceledError: If the cancellation event was set.
        """
        if self.state != LockState.UNACQUIRED:
            raise InvalidArgumentError("lock", f"cannot acquire a lock in state {self.state}")

        backoff = Backoff(
            initial_ms=self._options.lock_backoff_initial_ms,
            cap_ms=self._options.lock_backoff_cap_ms,
        )
        timeout_seconds = self.timeout.total_seconds()
        started = time.monotonic()

        with get_tracer().start_as_current_span(SPAN_ACQUIRE_LOCK) as span:
            span.set_attribute("lock.resource", self.resource)
            attempts = 0

            while True:
                if cancellation is not None and cancellation.is_set():
                    self.state = LockState.FAILED
                    raise OperationCanceledError(
                        f"Acquisition of the lock on '{self.resource}' was canceled"
                    )

                attempts += 1
                await self._reclaim_expired()
                acquired_at = await self._try_insert()

                if acquired_at is not None:
                    elapsed = time.monotonic() - started
                    self.state = LockState.HELD
                    self.acquired_at = acquired_at
                    self._metrics.record_lock_acquired(elapsed)
                    span.set_attribute("lock.attempts", attempts)
                    logger.debug(
                        "Acquired distributed lock",
                        extra={"resource": self.resource, "attempts": attempts},
                    )
                    return self

                elapsed = time.monotonic() - started
                if elapsed > timeout_seconds:
                    self.state = LockState.FAILED
                    self._metrics.record_lock_timeout(elapsed)
                    span.set_attribute("lock.attempts", attempts)
                    logger.info(
                        "Timed out acquiring distributed lock",
                        extra={"resource": self.resource, "attempts": attempts},
                    )
                    raise LockTimeoutError(self.resource, self.timeout)

                await backoff.sleep()

    async def release(self) -> None:
        """
        Release the lock by deleting its row.

        Raises:
            LockNotHeldError: If the lock is not held, or its row was already
                gone because a contender reclaimed the expired lease.
        """
        if self.state != LockState.HELD:
            raise LockNotHeldError(self.resource)

        with get_tracer().start_as_current_span(SPAN_RELEASE_LOCK) as span:
            span.set_attribute("lock.resource", self.resource)

            async with self._provider.acquire_connection() as connection:
                result = await connection.execute(
                    self._release_sql, {"resource": self.resource}
                )

            if result.rowcount <= 0:
                self.state = LockState.LOST
                self._metrics.record_lock_lost()
                logger.warning(
                    "Distributed lock was lost before release",
                    extra={"resource": self.resource},
                )
                raise LockNotHeldError(self.resource)

            self.state = LockState.RELEASED
            logger.debug("Released distributed lock", extra={"resource": self.resource})

    def detach(self) -> None:
        """Keep the lock held when the ``async with`` block exits."""
        self._detached = True

    async def _reclaim_expired(self) -> None:
        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(
                self._reclaim_sql,
                {
                    "resource": self.resource,
                    "lease_timeout": self._options.distributed_lock_timeout,
                },
            )

        if result.rowcount > 0:
            self._metrics.record_lock_reclaimed(result.rowcount)
            logger.info(
                "Reclaimed expired distributed lock",
                extra={"resource": self.resource},
            )

    async def _try_insert(self) -> datetime | None:
        async with self._provider.acquire_connection() as connection:
            result = await connection.execute(
                self._insert_sql, {"resource": self.resource}
            )
            return result.scalar_one_or_none()

    async def __aenter__(self) -> "DistributedLock":
        return await self.acquire()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._detached or self.state != LockState.HELD:
            return

        try:
            await self.release()
        except LockNotHeldError:
            if exc is None:
                raise
            # The body's exception takes precedence; release already logged the loss.

    def __repr__(self) -> str:
        return f"DistributedLock(resource={self.resource!r}, state={self.state})"


@asynccontextmanager
async def distributed_lock(
    resource: str,
    timeout: timedelta,
    provider: ConnectionProvider,
    options: StorageOptions | None = None,
) -> AsyncGenerator[DistributedLock]:
    """
    Hold a distributed lock for the duration of the block.

    Args:
        resource: Name of the protected resource.
        timeout: Total time budget for acquisition.
        provider: Source of scoped connections.
        options: Storage options. Defaults to the provider's options.

    Yields:
        DistributedLock: The held lock.
    """
    async with DistributedLock(resource, timeout, provider, options) as lock:
        yield lock
