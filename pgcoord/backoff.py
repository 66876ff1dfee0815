"""
Randomized backoff for contended retry loops.
"""

import asyncio
import random

from pgcoord.constants import DEFAULT_BACKOFF_CAP_MS, DEFAULT_BACKOFF_INITIAL_MS


def next_interval(current_ms: int, rng: random.Random, cap_ms: int = DEFAULT_BACKOFF_CAP_MS) -> int:
    """
    Draw the next sleep interval.

    The result is uniform over [current, min(current * 2, cap)], both ends
    inclusive. An interval already above the cap stays where it is.

    Args:
        current_ms: The interval just slept, in milliseconds.
        rng: Random source owned by the caller.
        cap_ms: Upper bound for the doubled interval.

    Returns:
        The next interval in milliseconds.
    """
    upper = max(current_ms, min(current_ms * 2, cap_ms))
    return rng.randint(current_ms, upper)


class Backoff:
    """
    Jittered backoff state for a single retry loop.

    Each instance owns its own random source so concurrent loops never share
    (and synchronize on) the same jitter sequence.
    """

    def __init__(
        self,
        initial_ms: int = DEFAULT_BACKOFF_INITIAL_MS,
        cap_ms: int = DEFAULT_BACKOFF_CAP_MS,
        rng: random.Random | None = None,
    ):
        self.interval_ms = initial_ms
        self.cap_ms = cap_ms
        self._rng = rng or random.Random()

    async def sleep(self) -> int:
        """Sleep for the current interval, then advance it. Returns the new interval."""
        await asyncio.sleep(self.interval_ms / 1000)
        self.interval_ms = next_interval(self.interval_ms, self._rng, self.cap_ms)
        return self.interval_ms
