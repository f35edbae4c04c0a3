"""
Multi-step (wizard) form entry. Unlike the single-page strategy, an
unsolved CAPTCHA on any step aborts the attempt: later steps are
usually gated behind it.
"""

from loguru import logger

from contest_entry.captcha import solve_captcha
from contest_entry.checkbox_handler import CheckboxHandler
from contest_entry.errors import CaptchaError, EntryError, ErrorCode
from contest_entry.field_mapper import FieldMapper
from contest_entry.form_filler import FormFiller
from contest_entry.models import EntryResult, FormAnalysis
from contest_entry.multi_step import MultiStepHandler
from contest_entry.strategies.base import EntryContext, current_analysis, submit_and_confirm


class MultiStepStrategy:
    name = "multi-step"

    async def execute(self, ctx: EntryContext) -> EntryResult:
        first = await current_analysis(ctx)
        if not first.fields:
            raise EntryError("No form fields detected on the first step", ErrorCode.NO_FORM_FIELDS,
                             ctx.contest.id, ctx.entry_id)

        async def captcha_hook(page, analysis: FormAnalysis):
            await self.require_captcha_solved(ctx)

        handler = MultiStepHandler(
            ctx.analyzer,
            FormFiller(ctx.humanizer, FieldMapper(ctx.settings.min_field_confidence)),
            CheckboxHandler(ctx.humanizer),
            ctx.humanizer,
            settings=ctx.settings,
            captcha_hook=captcha_hook,
        )
        outcome = await handler.run(ctx.page, ctx.profile, ctx.options)
        if outcome.stop_reason in ("max-steps", "max-redirects"):
            ctx.errors.append(f"Multi-step stopped early: {outcome.stop_reason}")
        if outcome.iframe_form_detected:
            ctx.errors.append("Form inside an iframe was not filled")

        final = await ctx.analyzer.analyze_form(ctx.page)
        if final.has_captcha:
            await self.require_captcha_solved(ctx)

        result = await submit_and_confirm(ctx, self.name, final.submit_button)
        logger.info(f"📑 Multi-step strategy complete after {outcome.steps} steps: {result.status.value}")
        return result

    async def require_captcha_solved(self, ctx: EntryContext):
        try:
            await solve_captcha(ctx.page, ctx.captcha_solver)
        except CaptchaError as e:
            ctx.errors.append(f"CAPTCHA: {e.message}")
            logger.error("🔒 CAPTCHA solving failed, aborting submission")
            raise EntryError(f"CAPTCHA solving failed: {e.message}", ErrorCode.CAPTCHA_FAILED,
                             ctx.contest.id, ctx.entry_id) from e
