"""
Gaussian delays and the per-attempt Deadline.
"""

import asyncio
import random

import pytest

from contest_entry.errors import EntryTimeoutError
from contest_entry.timing import (
    CLICK_DELAY,
    Deadline,
    clamped_gaussian,
    gaussian,
    gaussian_between,
    sample_delay_ms,
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_gaussian_centres_on_mean():
    random.seed(7)
    samples = [gaussian(500, 50) for _ in range(2000)]
    assert abs(sum(samples) / len(samples) - 500) < 10


def test_clamped_values_stay_in_bounds():
    random.seed(3)
    for _ in range(500):
        assert 100 <= clamped_gaussian(0, 1000, 100, 200) <= 200
        assert 50 <= gaussian_between(50, 150) <= 150
        assert CLICK_DELAY[2] <= sample_delay_ms(CLICK_DELAY) <= CLICK_DELAY[3]


def test_unbounded_deadline():
    deadline = Deadline()
    assert deadline.remaining() is None
    assert not deadline.expired
    deadline.check()


def test_deadline_expires_with_clock():
    clock = FakeClock()
    deadline = Deadline(1_000, clock=clock)
    assert deadline.remaining() == pytest.approx(1.0)
    clock.now += 0.4
    assert deadline.remaining() == pytest.approx(0.6)
    clock.now += 1.0
    assert deadline.expired
    with pytest.raises(EntryTimeoutError):
        deadline.check()


def test_cancel_expires_immediately():
    deadline = Deadline()
    deadline.cancel()
    assert deadline.expired
    with pytest.raises(EntryTimeoutError):
        asyncio.run(deadline.sleep(0))


def test_sleep_stops_at_deadline():
    async def scenario():
        deadline = Deadline(20)
        await deadline.sleep(5)

    with pytest.raises(EntryTimeoutError):
        asyncio.run(scenario())


def test_short_sleep_within_budget():
    asyncio.run(Deadline(5_000).sleep(0.001))


def test_run_bounds_slow_operation():
    async def scenario():
        deadline = Deadline(30)
        await deadline.run(asyncio.sleep(5))

    with pytest.raises(EntryTimeoutError):
        asyncio.run(scenario())


def test_run_returns_value():
    async def answer():
        return 42

    assert asyncio.run(Deadline(1_000).run(answer())) == 42
    assert asyncio.run(Deadline().run(answer())) == 42
