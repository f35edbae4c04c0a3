"""
Entry limits and the attempt log on a temporary SQLite database.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from contest_entry.database import EntryStore
from contest_entry.database.operations import next_eligible_at
from contest_entry.models import EntryFrequency, EntryResult, EntryStatus
from contest_entry.recorder import EntryRecorder

START = datetime(2026, 3, 1, 9, 0)


class Clock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store(tmp_path):
    return EntryStore(f"sqlite:///{tmp_path / 'entries.db'}")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def recorder(store, clock):
    return EntryRecorder(store, clock=clock)


def result(entry_id="e1", status=EntryStatus.CONFIRMED, contest_id="c1", profile_id="p1", **kwargs):
    return EntryResult(entry_id=entry_id, contest_id=contest_id, profile_id=profile_id, status=status, **kwargs)


def test_next_eligible_at():
    assert next_eligible_at(EntryFrequency.ONCE, START) is None
    assert next_eligible_at(EntryFrequency.DAILY, START) == START + timedelta(hours=24)
    assert next_eligible_at(EntryFrequency.WEEKLY, START) == START + timedelta(days=7)
    assert next_eligible_at(EntryFrequency.UNLIMITED, START) == START


def test_never_entered_is_eligible(recorder):
    assert asyncio.run(recorder.check_entry_limit("c1", "p1"))


def test_once_is_never_eligible_again(recorder, clock):
    async def scenario():
        limit = await recorder.update_entry_limit("c1", "p1", EntryFrequency.ONCE)
        assert limit.entry_count == 1
        assert limit.next_eligible_at is None
        clock.now = START + timedelta(days=3650)
        return await recorder.check_entry_limit("c1", "p1")

    assert asyncio.run(scenario()) is False


def test_daily_window(recorder, clock):
    async def scenario():
        await recorder.update_entry_limit("c1", "p1", EntryFrequency.DAILY)
        clock.now = START + timedelta(hours=23, minutes=59)
        early = await recorder.check_entry_limit("c1", "p1")
        clock.now = START + timedelta(hours=24)
        on_time = await recorder.check_entry_limit("c1", "p1")
        return early, on_time

    assert asyncio.run(scenario()) == (False, True)


def test_upsert_counts_entries(recorder, clock):
    async def scenario():
        await recorder.update_entry_limit("c1", "p1", EntryFrequency.DAILY)
        clock.now = START + timedelta(days=1)
        return await recorder.update_entry_limit("c1", "p1", EntryFrequency.DAILY)

    limit = asyncio.run(scenario())
    assert limit.entry_count == 2
    assert limit.last_entry_at == START + timedelta(days=1)
    assert limit.next_eligible_at == START + timedelta(days=2)


def test_concurrent_upserts_count_every_entry(store):
    workers = 8
    barrier = threading.Barrier(workers)

    def bump(i):
        barrier.wait()
        store.upsert_entry_limit("c1", "p1", EntryFrequency.DAILY, START + timedelta(minutes=i))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(bump, range(workers)))

    assert store.get_entry_limit("c1", "p1").entry_count == workers


def test_limits_are_per_pair(recorder):
    async def scenario():
        await recorder.update_entry_limit("c1", "p1")
        return (
            await recorder.check_entry_limit("c1", "p2"),
            await recorder.check_entry_limit("c2", "p1"),
        )

    assert asyncio.run(scenario()) == (True, True)


def test_record_and_read_back(recorder):
    async def scenario():
        entry_id = await recorder.record(result(errors=["CAPTCHA: no solver"], strategy="simple-form"))
        return await recorder.get_entry(entry_id)

    entry = asyncio.run(scenario())
    assert entry["status"] == "confirmed"
    assert entry["errors"] == ["CAPTCHA: no solver"]
    assert entry["strategy"] == "simple-form"
    assert entry["submitted_at"] == START.isoformat()
    assert entry["confirmed_at"] == START.isoformat()


def test_skipped_attempts_are_recorded(recorder):
    async def scenario():
        await recorder.record(result("e1", EntryStatus.SKIPPED, error_code="ENTRY_LIMIT_REACHED"))
        await recorder.record(result("e2", EntryStatus.FAILED))
        return await recorder.get_entries_for_contest("c1"), await recorder.get_entry_stats()

    entries, stats = asyncio.run(scenario())
    assert {e["id"] for e in entries} == {"e1", "e2"}
    assert stats["skipped"] == 1
    assert stats["failed"] == 1
    assert stats["total"] == 2
    assert entries[0]["submitted_at"] is None


def test_update_status(recorder, clock):
    async def scenario():
        await recorder.record(result("e1", EntryStatus.SUBMITTED))
        clock.now = START + timedelta(hours=2)
        updated = await recorder.update_status("e1", EntryStatus.CONFIRMED, message="Email confirmed")
        missing = await recorder.update_status("nope", EntryStatus.CONFIRMED)
        return updated, missing, await recorder.get_entry("e1")

    updated, missing, entry = asyncio.run(scenario())
    assert updated and not missing
    assert entry["status"] == "confirmed"
    assert entry["message"] == "Email confirmed"
    assert entry["confirmed_at"] == (START + timedelta(hours=2)).isoformat()


def test_entries_filtered_by_profile(recorder):
    async def scenario():
        await recorder.record(result("e1", profile_id="p1"))
        await recorder.record(result("e2", profile_id="p2"))
        return await recorder.get_entries_for_profile("p2")

    assert [e["id"] for e in asyncio.run(scenario())] == ["e2"]


class BrokenStore:
    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    is_eligible = upsert_entry_limit = add_entry = update_entry_status = _fail
    get_entry = get_entries = get_entry_limit = get_entry_stats = _fail


def test_storage_failures_degrade():
    recorder = EntryRecorder(BrokenStore())

    async def scenario():
        return (
            await recorder.check_entry_limit("c1", "p1"),
            await recorder.update_entry_limit("c1", "p1"),
            await recorder.record(result("e9")),
            await recorder.get_entry_stats(),
            await recorder.get_entries_for_contest("c1"),
        )

    assert asyncio.run(scenario()) == (True, None, "e9", {}, [])
