"""
Human-like timing and the per-attempt deadline.

Random delays are drawn from a Gaussian (Box-Muller) so values cluster
around a natural mean instead of a uniform spread, which looks robotic.
Every delay goes through a Deadline so an attempt never sleeps past its
budget.
"""

import asyncio
import math
import random
import time
from typing import Awaitable, Callable, Optional, TypeVar

from contest_entry.errors import EntryTimeoutError

T = TypeVar("T")


def gaussian(mean: float, std_dev: float) -> float:
    """Box-Muller transform: a normally distributed sample."""
    u1 = random.random()
    while u1 == 0:
        u1 = random.random()
    u2 = random.random()
    z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z0 * std_dev


def clamped_gaussian(mean: float, std_dev: float, low: float, high: float) -> float:
    return max(low, min(high, gaussian(mean, std_dev)))


def gaussian_between(min_ms: float, max_ms: float) -> float:
    """Sample centred between the bounds (std = range / 4), clamped to them."""
    mean = (min_ms + max_ms) / 2
    return clamped_gaussian(mean, (max_ms - min_ms) / 4, min_ms, max_ms)


# Named human delays in milliseconds: (mean, std, min, max)
CLICK_DELAY = (200, 60, 100, 400)
SCROLL_DELAY = (450, 120, 200, 800)
PAGE_LOAD_DELAY = (1800, 400, 1000, 3000)
INTER_FIELD_DELAY = (400, 150, 0, 1200)


def sample_delay_ms(profile) -> float:
    mean, std, low, high = profile
    return clamped_gaussian(mean, std, low, high)


class Deadline:
    """
    Cancellation context for one entry attempt.

    The orchestrator creates one per attempt and hands it to every
    component that waits. Sleeps never overrun it; once it expires any
    further wait raises EntryTimeoutError immediately.
    """

    def __init__(self, timeout_ms: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.timeout_ms = timeout_ms
        self.expires_at = None if timeout_ms is None else clock() + timeout_ms / 1000.0
        self._cancelled = False

    def remaining(self) -> Optional[float]:
        """Seconds left, or None for an unbounded deadline."""
        if self._cancelled:
            return 0.0
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def cancel(self):
        """Expire the deadline now."""
        self._cancelled = True

    def check(self):
        if self.expired:
            raise EntryTimeoutError(f"Entry timed out after {self.timeout_ms}ms")

    async def sleep(self, seconds: float):
        """Sleep up to `seconds`, stopping at the deadline."""
        self.check()
        remaining = self.remaining()
        if remaining is not None and seconds >= remaining:
            await asyncio.sleep(remaining)
            self.check()
            raise EntryTimeoutError(f"Entry timed out after {self.timeout_ms}ms")
        await asyncio.sleep(max(0.0, seconds))

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await an operation bounded by the remaining budget."""
        if self.expired:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.check()
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            raise EntryTimeoutError(f"Entry timed out after {self.timeout_ms}ms")
