"""
Unit tests for metrics collection.
"""

import pytest
from prometheus_client import CollectorRegistry

from pgcoord.observability.metrics import MetricsCollector


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    @pytest.fixture
    def registry(self) -> CollectorRegistry:
        return CollectorRegistry()

    @pytest.fixture
    def metrics(self, registry: CollectorRegistry) -> MetricsCollector:
        return MetricsCollector(registry)

    def test_lock_metrics(self, metrics: MetricsCollector, registry: CollectorRegistry):
        """Test lock acquisition, timeout and lost counters."""
        metrics.record_lock_acquired(0.2)
        metrics.record_lock_acquired(0.3)
        metrics.record_lock_timeout(5.0)
        metrics.record_lock_lost()
        metrics.record_lock_reclaimed(2)

        assert registry.get_sample_value("locks_acquired_total") == 2
        assert registry.get_sample_value("lock_timeouts_total") == 1
        assert registry.get_sample_value("locks_lost_total") == 1
        assert registry.get_sample_value("locks_reclaimed_total") == 2
        assert registry.get_sample_value("lock_wait_seconds_count") == 3

    def test_queue_metrics(self, metrics: MetricsCollector, registry: CollectorRegistry):
        """Test per-queue counters and depth gauges."""
        metrics.record_job_enqueued("default")
        metrics.record_job_enqueued("default")
        metrics.record_job_dequeued("default")
        metrics.record_job_removed("default")
        metrics.record_job_requeued("critical")
        metrics.update_queue_depth("default", enqueued=4, fetched=1)

        assert registry.get_sample_value("jobs_enqueued_total", {"queue": "default"}) == 2
        assert registry.get_sample_value("jobs_dequeued_total", {"queue": "default"}) == 1
        assert registry.get_sample_value("jobs_removed_total", {"queue": "default"}) == 1
        assert registry.get_sample_value("jobs_requeued_total", {"queue": "critical"}) == 1
        assert registry.get_sample_value(
            "job_queue_depth", {"queue": "default", "state": "enqueued"}
        ) == 4
        assert registry.get_sample_value(
            "job_queue_depth", {"queue": "default", "state": "fetched"}
        ) == 1

    def test_exposition(self, metrics: MetricsCollector):
        """Test Prometheus text exposition."""
        metrics.record_job_enqueued("default")

        output = metrics.get_metrics()

        assert b"jobs_enqueued_total" in output
        assert metrics.get_content_type().startswith("text/plain")
