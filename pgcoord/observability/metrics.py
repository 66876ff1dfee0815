"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from pgcoord.constants import (
    METRIC_JOBS_DEQUEUED,
    METRIC_JOBS_ENQUEUED,
    METRIC_JOBS_REMOVED,
    METRIC_JOBS_REQUEUED,
    METRIC_LOCK_TIMEOUTS,
    METRIC_LOCK_WAIT,
    METRIC_LOCKS_ACQUIRED,
    METRIC_LOCKS_LOST,
    METRIC_LOCKS_RECLAIMED,
    METRIC_QUEUE_DEPTH,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the lock and the queue.

    Collects metrics for:
    - Lock acquisitions, timeouts, reclaims and lost leases
    - Time spent waiting for locks
    - Queue enqueues, claims, removals and requeues
    - Queue depth
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.locks_acquired = Counter(
            METRIC_LOCKS_ACQUIRED,
            "Total number of distributed locks acquired",
            registry=self._registry,
        )

        self.lock_timeouts = Counter(
            METRIC_LOCK_TIMEOUTS,
            "Total number of lock acquisitions that timed out",
            registry=self._registry,
        )

        self.locks_reclaimed = Counter(
            METRIC_LOCKS_RECLAIMED,
            "Total number of expired locks reclaimed from dead holders",
            registry=self._registry,
        )

        self.locks_lost = Counter(
            METRIC_LOCKS_LOST,
            "Total number of releases that found the lock already gone",
            registry=self._registry,
        )

        self.lock_wait = Histogram(
            METRIC_LOCK_WAIT,
            "Time spent acquiring a distributed lock in seconds",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

        self.jobs_enqueued = Counter(
            METRIC_JOBS_ENQUEUED,
            "Total number of queue items enqueued",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_dequeued = Counter(
            METRIC_JOBS_DEQUEUED,
            "Total number of queue items claimed",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_removed = Counter(
            METRIC_JOBS_REMOVED,
            "Total number of queue items removed after processing",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_requeued = Counter(
            METRIC_JOBS_REQUEUED,
            "Total number of queue items returned to the queue",
            ["queue"],
            registry=self._registry,
        )

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of items in the queue",
            ["queue", "state"],
            registry=self._registry,
        )

    def record_lock_acquired(self, wait_seconds: float) -> None:
        """Record a successful lock acquisition."""
        self.locks_acquired.inc()
        self.lock_wait.observe(wait_seconds)

    def record_lock_timeout(self, wait_seconds: float) -> None:
        """Record a lock acquisition that ran out of time."""
        self.lock_timeouts.inc()
        self.lock_wait.observe(wait_seconds)

    def record_lock_reclaimed(self, count: int = 1) -> None:
        self.locks_reclaimed.inc(count)

    def record_lock_lost(self) -> None:
        self.locks_lost.inc()

    def record_job_enqueued(self, queue: str) -> None:
        self.jobs_enqueued.labels(queue=queue).inc()

    def record_job_dequeued(self, queue: str) -> None:
        self.jobs_dequeued.labels(queue=queue).inc()

    def record_job_removed(self, queue: str) -> None:
        self.jobs_removed.labels(queue=queue).inc()

    def record_job_requeued(self, queue: str) -> None:
        self.jobs_requeued.labels(queue=queue).inc()

    def update_queue_depth(self, queue: str, enqueued: int, fetched: int) -> None:
        """Update queue depth gauges for a queue."""
        self.queue_depth.labels(queue=queue, state="enqueued").set(enqueued)
        self.queue_depth.labels(queue=queue, state="fetched").set(fetched)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics(registry: CollectorRegistry | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        registry: Optional custom registry for the global collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
