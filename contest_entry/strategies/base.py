"""
Shared pieces for entry strategies: the per-attempt context, the strategy
protocol, and the submit/confirm and CAPTCHA steps every strategy reuses.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.captcha import CaptchaSolver, solve_captcha
from contest_entry.config import EntryOptions, Settings
from contest_entry.confirmation import ConfirmationHandler
from contest_entry.errors import CaptchaError
from contest_entry.form_analyzer import FormAnalyzer
from contest_entry.humanizer import Humanizer
from contest_entry.models import Contest, EntryResult, EntryStatus, FormAnalysis, Profile
from contest_entry.multi_step import CLICK_JS
from contest_entry.timing import Deadline
from contest_entry.utils.helpers import utc_now


@dataclass
class EntryContext:
    """Everything a strategy needs for one attempt."""
    page: Any
    contest: Contest
    profile: Profile
    options: EntryOptions
    entry_id: str
    deadline: Deadline
    humanizer: Humanizer
    settings: Settings
    analyzer: FormAnalyzer = field(default_factory=FormAnalyzer)
    captcha_solver: Optional[CaptchaSolver] = None
    analysis: Optional[FormAnalysis] = None  # First-page analysis done by the orchestrator
    errors: List[str] = field(default_factory=list)


class EntryStrategy(Protocol):
    name: str

    async def execute(self, ctx: EntryContext) -> EntryResult:
        ...


def build_result(ctx: EntryContext, strategy: str, status: EntryStatus, message: str = "", **extra) -> EntryResult:
    """EntryResult for this attempt carrying the accumulated error trail."""
    return EntryResult(
        entry_id=ctx.entry_id,
        contest_id=ctx.contest.id,
        profile_id=ctx.profile.id,
        status=status,
        message=message,
        strategy=strategy,
        timestamp=utc_now(),
        errors=list(ctx.errors),
        **extra,
    )


async def current_analysis(ctx: EntryContext) -> FormAnalysis:
    """Reuse the orchestrator's first-page analysis once, then re-analyze."""
    if ctx.analysis is not None:
        analysis, ctx.analysis = ctx.analysis, None
        return analysis
    return await ctx.analyzer.analyze_form(ctx.page)


async def try_clear_captcha(ctx: EntryContext) -> bool:
    """
    Solve a visible CAPTCHA, recording a failure instead of raising.

    Returns:
        True if no CAPTCHA remains in the way
    """
    try:
        await solve_captcha(ctx.page, ctx.captcha_solver)
        return True
    except CaptchaError as e:
        ctx.errors.append(f"CAPTCHA: {e.message}")
        logger.error(f"🔒 CAPTCHA not solved ({e.code.value}): {e.message}")
        return False


async def submit_form(ctx: EntryContext, submit_selector: str):
    """Click submit like a person would, then wait (bounded) for a navigation."""
    page = ctx.page
    logger.info(f"📨 Submitting via {submit_selector}")
    try:
        await ctx.humanizer.human_click(page, submit_selector)
    except PlaywrightError as e:
        logger.debug(f"Human click on submit failed, using DOM click: {e}")
        if not await page.evaluate(CLICK_JS, submit_selector):
            raise

    try:
        await ctx.deadline.run(
            page.wait_for_load_state("domcontentloaded", timeout=ctx.settings.submit_navigation_wait_ms)
        )
    except PlaywrightError:
        # AJAX forms submit without navigating
        logger.debug("No navigation after submit")


async def submit_and_confirm(ctx: EntryContext, strategy: str, submit_selector: str) -> EntryResult:
    """Submit, read the result page and turn it into an EntryResult."""
    await submit_form(ctx, submit_selector)

    handler = ConfirmationHandler(
        ctx.humanizer,
        ctx.settings.resolved_screenshots_dir(),
        take_screenshots=ctx.options.take_screenshots,
    )
    confirmation = await handler.handle(ctx.page, ctx.entry_id)
    return build_result(
        ctx, strategy, confirmation.status, confirmation.message,
        confirmation_number=confirmation.confirmation_number,
        screenshot_path=confirmation.screenshot_path,
    )
