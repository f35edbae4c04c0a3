"""
End-to-end attempt lifecycle: compliance, limits, acquisition, deadline,
bookkeeping and release.
"""

import asyncio

import pytest

from contest_entry.config import EntryOptions, Settings
from contest_entry.database import EntryStore
from contest_entry.models import Contest, EntryFrequency, EntryStatus, Profile
from contest_entry.orchestrator import EntryOrchestrator
from contest_entry.recorder import EntryRecorder
from contest_entry.strategies import StrategyKind
from contest_entry.utils.simple_logger import slog
from tests.fakes import FakePage, FakeProvider, StubStrategy

PROFILE = Profile(
    id="p1", first_name="Ada", last_name="Lovelace", email="ada@example.com",
    date_of_birth="1990-01-01", address={"state": "CA", "country": "US"},
)


def make_contest(**kwargs) -> Contest:
    return Contest(id=kwargs.pop("id", "c1"), url="https://example.com/win", title="Win a Boat", **kwargs)


@pytest.fixture
def recorder(tmp_path):
    return EntryRecorder(EntryStore(f"sqlite:///{tmp_path / 'entries.db'}"))


@pytest.fixture
def settings(tmp_path):
    return Settings(humanize=False, navigation_settle_ms=0, screenshots_dir=str(tmp_path / "shots"))


def make_orchestrator(recorder, settings, provider=None, strategy=None):
    strategy = strategy or StubStrategy()
    return EntryOrchestrator(
        provider or FakeProvider(),
        recorder,
        settings=settings,
        strategies={kind: strategy for kind in StrategyKind},
    )


def test_successful_entry_updates_limit_and_log(recorder, settings):
    provider = FakeProvider()
    orchestrator = make_orchestrator(recorder, settings, provider)

    async def scenario():
        result = await orchestrator.enter(make_contest(), PROFILE)
        return result, await recorder.get_entry_limit("c1", "p1"), await recorder.get_entry(result.entry_id)

    result, limit, stored = asyncio.run(scenario())
    assert result.status == EntryStatus.CONFIRMED
    assert result.duration_ms >= 0
    assert limit.entry_count == 1
    assert stored["status"] == "confirmed"
    assert provider.acquired == provider.released == 1


def test_underage_profile_skipped_without_browser(recorder, settings):
    provider = FakeProvider()
    orchestrator = make_orchestrator(recorder, settings, provider)
    result = asyncio.run(orchestrator.enter(make_contest(age_requirement=99), PROFILE))

    assert result.status == EntryStatus.SKIPPED
    assert result.error_code == "AGE_REQUIREMENT_NOT_MET"
    assert provider.acquired == 0
    assert asyncio.run(recorder.get_entry(result.entry_id))["status"] == "skipped"


def test_excluded_state_skipped(recorder, settings):
    provider = FakeProvider()
    result = asyncio.run(make_orchestrator(recorder, settings, provider).enter(
        make_contest(geo_restrictions=["US", "exclude:CA"]), PROFILE,
    ))
    assert result.status == EntryStatus.SKIPPED
    assert result.error_code == "GEO_STATE_EXCLUDED"
    assert provider.acquired == 0


def test_once_contest_is_entered_only_once(recorder, settings):
    provider = FakeProvider()
    orchestrator = make_orchestrator(recorder, settings, provider)

    async def scenario():
        contest = make_contest(entry_frequency=EntryFrequency.ONCE)
        return await orchestrator.enter(contest, PROFILE), await orchestrator.enter(contest, PROFILE)

    first, second = asyncio.run(scenario())
    assert first.status == EntryStatus.CONFIRMED
    assert second.status == EntryStatus.SKIPPED
    assert second.error_code == "ENTRY_LIMIT_REACHED"
    assert provider.acquired == 1


def test_failed_attempt_does_not_consume_limit(recorder, settings):
    orchestrator = make_orchestrator(recorder, settings, strategy=StubStrategy(EntryStatus.FAILED))

    async def scenario():
        await orchestrator.enter(make_contest(), PROFILE)
        return await recorder.check_entry_limit("c1", "p1")

    assert asyncio.run(scenario()) is True


def test_acquisition_failure_releases_nothing(recorder, settings):
    provider = FakeProvider(fail_with=RuntimeError("no browsers left"))
    result = asyncio.run(make_orchestrator(recorder, settings, provider).enter(
        make_contest(), PROFILE, EntryOptions(proxy_id="us-east"),
    ))

    assert result.status == EntryStatus.FAILED
    assert result.error_code == "BROWSER_ACQUISITION_FAILED"
    assert "no browsers left" in result.message
    assert provider.proxy_ids == ["us-east"]
    assert provider.released == 0


def test_deadline_expiry_fails_and_releases(recorder, settings):
    async def slow(ctx):
        await asyncio.sleep(5)

    provider = FakeProvider()
    orchestrator = make_orchestrator(recorder, settings, provider, StubStrategy(action=slow))
    result = asyncio.run(orchestrator.enter(make_contest(), PROFILE, EntryOptions(timeout_ms=50)))

    assert result.status == EntryStatus.FAILED
    assert result.error_code == "ENTRY_TIMEOUT"
    assert result.duration_ms < 5_000
    assert result.screenshot_path is not None
    assert provider.released == 1


def test_navigation_failure(recorder, settings):
    provider = FakeProvider(FakePage(goto_error="net::ERR_CONNECTION_REFUSED"))
    result = asyncio.run(make_orchestrator(recorder, settings, provider).enter(
        make_contest(), PROFILE, EntryOptions(take_screenshots=False),
    ))
    assert result.status == EntryStatus.FAILED
    assert result.error_code == "NAVIGATION_FAILED"
    assert "Connection refused" in result.message
    assert result.errors == [result.message]
    assert provider.released == 1


def test_page_without_form_fails_with_default_strategies(recorder, settings):
    provider = FakeProvider()
    orchestrator = EntryOrchestrator(provider, recorder, settings=settings)
    result = asyncio.run(orchestrator.enter(make_contest(), PROFILE))

    assert result.status == EntryStatus.FAILED
    assert result.error_code == "NO_FORM_FIELDS"
    assert provider.released == 1


def test_unexpected_error_is_execution_failure(recorder, settings):
    async def explode(ctx):
        raise KeyError("boom")

    provider = FakeProvider()
    result = asyncio.run(make_orchestrator(recorder, settings, provider, StubStrategy(action=explode)).enter(
        make_contest(), PROFILE, EntryOptions(take_screenshots=False),
    ))
    assert result.status == EntryStatus.FAILED
    assert result.error_code == "EXECUTION_FAILED"
    assert provider.released == 1


def test_caller_cancellation_propagates_after_release(recorder, settings):
    async def slow(ctx):
        await asyncio.sleep(5)

    provider = FakeProvider()
    orchestrator = make_orchestrator(recorder, settings, provider, StubStrategy(action=slow))

    async def scenario():
        task = asyncio.create_task(orchestrator.enter(make_contest(), PROFILE, EntryOptions(timeout_ms=10_000)))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert provider.acquired == provider.released == 1


def test_enter_many_runs_in_order(recorder, settings):
    orchestrator = make_orchestrator(recorder, settings)
    contests = [make_contest(id="c1"), make_contest(id="c2", legitimacy_score=0.0)]
    results = asyncio.run(orchestrator.enter_many(contests, PROFILE))

    assert [r.contest_id for r in results] == ["c1", "c2"]
    assert [r.status for r in results] == [EntryStatus.CONFIRMED, EntryStatus.SKIPPED]


def test_concurrent_attempts_share_no_logger_state(recorder, settings):
    orchestrator = make_orchestrator(recorder, settings)

    async def scenario():
        return await asyncio.gather(
            orchestrator.enter(make_contest(id="c1"), PROFILE),
            orchestrator.enter(make_contest(id="c2"), PROFILE),
        )

    results = asyncio.run(scenario())
    assert [r.status for r in results] == [EntryStatus.CONFIRMED, EntryStatus.CONFIRMED]
    assert set(vars(slog)) == {"detailed"}
