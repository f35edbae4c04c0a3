"""
Entry Orchestrator
Coordinates one entry attempt end to end: compliance, frequency limit,
browser acquisition, bounded execution, bookkeeping and release.
"""

import asyncio
import time
from typing import Dict, List, Optional, Sequence

from loguru import logger

from contest_entry.browser import BrowserContextProvider, BrowserSession, navigate, take_screenshot
from contest_entry.captcha import CaptchaSolver
from contest_entry.compliance import check_compliance
from contest_entry.config import EntryOptions, Settings
from contest_entry.errors import (
    ComplianceError, EntryAutomationError, EntryTimeoutError, ErrorCode,
)
from contest_entry.form_analyzer import FormAnalyzer
from contest_entry.humanizer import Humanizer
from contest_entry.models import Contest, EntryResult, EntryStatus, Profile
from contest_entry.recorder import EntryRecorder
from contest_entry.strategies import EntryContext, EntryStrategy, StrategyKind, default_strategies, select_strategy
from contest_entry.timing import Deadline
from contest_entry.utils.helpers import new_entry_id, utc_now
from contest_entry.utils.simple_logger import slog


class EntryOrchestrator:
    """
    Runs entry attempts. enter() never raises for attempt failures: every
    path ends in an EntryResult that has been handed to the recorder.
    """

    def __init__(
        self,
        browser_provider: BrowserContextProvider,
        recorder: EntryRecorder,
        settings: Optional[Settings] = None,
        analyzer: Optional[FormAnalyzer] = None,
        captcha_solver: Optional[CaptchaSolver] = None,
        strategies: Optional[Dict[StrategyKind, EntryStrategy]] = None,
    ):
        """
        Args:
            browser_provider: Hands out and takes back browser contexts
            recorder: Frequency limits and attempt log
            settings: Engine limits (defaults if omitted)
            analyzer: Form analyzer, substitutable for custom pattern tables
            captcha_solver: Optional CAPTCHA solving provider
            strategies: Strategy implementations per kind
        """
        self.browser_provider = browser_provider
        self.recorder = recorder
        self.settings = settings or Settings()
        self.analyzer = analyzer or FormAnalyzer()
        self.captcha_solver = captcha_solver
        self.strategies = strategies or default_strategies()

    async def enter(self, contest: Contest, profile: Profile,
                    options: Optional[EntryOptions] = None) -> EntryResult:
        """
        Enter one contest for one profile.

        Raises:
            asyncio.CancelledError: only when the caller cancels the call
                itself; the browser context is released first
        """
        options = (options or EntryOptions()).resolve(self.settings)
        entry_id = new_entry_id()
        started = time.monotonic()
        errors: List[str] = []

        slog.attempt_start(contest.label, profile.id)

        # 1. Compliance gate, before anything is spent
        try:
            check_compliance(contest, profile)
        except ComplianceError as e:
            slog.attempt_skipped(e.message)
            return await self._finish(self._result(
                entry_id, contest, profile, EntryStatus.SKIPPED, e.message, started, errors, e.code,
            ))

        # 2. Frequency limit
        if not await self.recorder.check_entry_limit(contest.id, profile.id):
            message = "Entry limit reached for this contest"
            slog.attempt_skipped(message)
            return await self._finish(self._result(
                entry_id, contest, profile, EntryStatus.SKIPPED, message, started, errors,
                ErrorCode.ENTRY_LIMIT_REACHED,
            ))

        # 3. Browser acquisition; nothing to release if it fails
        try:
            session = await self.browser_provider.acquire(options.proxy_id)
        except Exception as e:
            message = f"Browser acquisition failed: {e}"
            errors.append(message)
            slog.attempt_failed(message)
            return await self._finish(self._result(
                entry_id, contest, profile, EntryStatus.FAILED, message, started, errors,
                ErrorCode.BROWSER_ACQUISITION_FAILED,
            ))

        # 4. Bounded execution; 5-7 bookkeeping, failure capture, release
        try:
            deadline = Deadline(options.timeout_ms)
            ctx = EntryContext(
                page=session.page,
                contest=contest,
                profile=profile,
                options=options,
                entry_id=entry_id,
                deadline=deadline,
                humanizer=Humanizer(deadline, enabled=self.settings.humanize),
                settings=self.settings,
                analyzer=self.analyzer,
                captcha_solver=self.captcha_solver,
                errors=errors,
            )
            try:
                try:
                    result = await asyncio.wait_for(self._execute(ctx), timeout=options.timeout_ms / 1000)
                except asyncio.TimeoutError:
                    deadline.cancel()
                    raise EntryTimeoutError(f"Entry timed out after {options.timeout_ms}ms", contest.id, entry_id)
            except EntryTimeoutError as e:
                result = await self._failure(session, ctx, e.message, ErrorCode.ENTRY_TIMEOUT, started)
            except EntryAutomationError as e:
                result = await self._failure(session, ctx, e.message, e.code, started)
            except Exception as e:
                logger.exception(f"Unexpected error during entry {entry_id[:8]}")
                result = await self._failure(session, ctx, str(e) or type(e).__name__,
                                             ErrorCode.EXECUTION_FAILED, started)
            else:
                result.duration_ms = self._elapsed_ms(started)
                if result.succeeded:
                    await self.recorder.update_entry_limit(contest.id, profile.id, contest.entry_frequency)
                    slog.attempt_success(result.status.value, result.message)
                else:
                    slog.attempt_failed(result.message or result.status.value)

            return await self._finish(result)
        finally:
            await self._release(session)

    async def enter_many(self, contests: Sequence[Contest], profile: Profile,
                         options: Optional[EntryOptions] = None) -> List[EntryResult]:
        """Enter contests one after another and log a summary."""
        started = time.monotonic()
        results = []
        for contest in contests:
            results.append(await self.enter(contest, profile, options))

        successful = sum(1 for r in results if r.succeeded)
        skipped = sum(1 for r in results if r.status == EntryStatus.SKIPPED)
        slog.summary(successful, len(results) - successful - skipped, skipped, time.monotonic() - started)
        return results

    async def _execute(self, ctx: EntryContext) -> EntryResult:
        """Navigate, analyze the landing page, pick a strategy and run it."""
        await ctx.deadline.run(navigate(ctx.page, ctx.contest.url, self.settings.page_load_timeout_ms))
        await ctx.humanizer.sleep_ms(self.settings.navigation_settle_ms)

        ctx.analysis = await self.analyzer.analyze_form(ctx.page)
        kind = select_strategy(ctx.contest.entry_method, ctx.contest.type, ctx.analysis.is_multi_step)
        logger.info(f"🧭 Strategy: {kind.value}")
        return await self.strategies[kind].execute(ctx)

    async def _failure(self, session: BrowserSession, ctx: EntryContext, message: str,
                       code: ErrorCode, started: float) -> EntryResult:
        """Failed result with the error trail and a best-effort screenshot."""
        ctx.errors.append(message)
        slog.attempt_failed(message)

        screenshot_path = None
        if ctx.options.take_screenshots:
            try:
                screenshot_path = await asyncio.wait_for(
                    take_screenshot(session.page, self.settings.resolved_screenshots_dir(), f"error_{ctx.entry_id}"),
                    timeout=self.settings.screenshot_timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                logger.debug("Failure screenshot timed out")

        return self._result(
            ctx.entry_id, ctx.contest, ctx.profile, EntryStatus.FAILED, message, started, ctx.errors, code,
            screenshot_path=screenshot_path,
        )

    async def _finish(self, result: EntryResult) -> EntryResult:
        await self.recorder.record(result)
        return result

    async def _release(self, session: BrowserSession):
        try:
            await self.browser_provider.release(session)
        except Exception as e:
            logger.error(f"❌ Failed to release browser context {session.id[:8]}: {e}")

    def _result(self, entry_id: str, contest: Contest, profile: Profile, status: EntryStatus,
                message: str, started: float, errors: List[str], code: Optional[ErrorCode] = None,
                screenshot_path: Optional[str] = None) -> EntryResult:
        return EntryResult(
            entry_id=entry_id,
            contest_id=contest.id,
            profile_id=profile.id,
            status=status,
            message=message,
            error_code=code.value if code else None,
            screenshot_path=screenshot_path,
            timestamp=utc_now(),
            duration_ms=self._elapsed_ms(started),
            errors=list(errors),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
