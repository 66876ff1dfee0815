"""
Unit tests for the backoff policy.
"""

import random

import pytest

from pgcoord import backoff as backoff_module
from pgcoord.backoff import Backoff, next_interval


class TestNextInterval:
    """Tests for next_interval."""

    def test_stays_within_doubling_range(self):
        """Test that the next interval is between current and twice current."""
        rng = random.Random(42)

        for _ in range(500):
            value = next_interval(50, rng, cap_ms=1000)
            assert 50 <= value <= 100

    def test_respects_cap(self):
        """Test that the doubled interval never exceeds the cap."""
        rng = random.Random(7)

        for _ in range(500):
            value = next_interval(800, rng, cap_ms=1000)
            assert 800 <= value <= 1000

    def test_at_cap_stays_at_cap(self):
        """Test that an interval equal to the cap does not move."""
        assert next_interval(1000, random.Random(), cap_ms=1000) == 1000

    def test_above_cap_does_not_shrink(self):
        """Test that an interval already above the cap is kept."""
        assert next_interval(1500, random.Random(), cap_ms=1000) == 1500

    def test_reaches_both_ends(self):
        """Test that both ends of the range are reachable."""
        rng = random.Random(0)
        values = {next_interval(2, rng, cap_ms=1000) for _ in range(200)}

        assert values == {2, 3, 4}


class TestBackoff:
    """Tests for Backoff."""

    @pytest.fixture
    def sleeps(self, monkeypatch) -> list[float]:
        """Record sleep durations instead of sleeping."""
        recorded: list[float] = []

        async def fake_sleep(delay: float) -> None:
            recorded.append(delay)

        monkeypatch.setattr(backoff_module.asyncio, "sleep", fake_sleep)
        return recorded

    async def test_first_sleep_uses_initial_interval(self, sleeps: list[float]):
        """Test that the first sleep is the initial interval."""
        backoff = Backoff(initial_ms=50, cap_ms=1000, rng=random.Random(1))

        next_ms = await backoff.sleep()

        assert sleeps == [0.05]
        assert 50 <= next_ms <= 100
        assert backoff.interval_ms == next_ms

    async def test_converges_to_cap(self, sleeps: list[float]):
        """Test that repeated sleeps grow until the cap and stay there."""
        backoff = Backoff(initial_ms=50, cap_ms=1000, rng=random.Random(3))

        for _ in range(200):
            await backoff.sleep()

        assert all(delay <= 1.0 for delay in sleeps)
        assert sleeps == sorted(sleeps)
        assert backoff.interval_ms <= 1000

    async def test_instances_have_independent_random_sources(self, sleeps: list[float]):
        """Test that two backoffs do not share a random source."""
        first = Backoff()
        second = Backoff()

        assert first._rng is not second._rng
        assert first._rng is not random._inst
