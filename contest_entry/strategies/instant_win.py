"""
Instant-win entry: fill the pre-game form if the page has one, then play
the game and read the result.
"""

from loguru import logger

from contest_entry.checkbox_handler import CheckboxHandler
from contest_entry.confirmation import ConfirmationHandler
from contest_entry.field_mapper import FieldMapper
from contest_entry.form_filler import FormFiller
from contest_entry.instant_win import InstantWinHandler
from contest_entry.models import EntryResult, EntryStatus
from contest_entry.strategies.base import EntryContext, build_result, current_analysis, submit_form, try_clear_captcha


class InstantWinStrategy:
    name = "instant-win"

    async def execute(self, ctx: EntryContext) -> EntryResult:
        analysis = await current_analysis(ctx)

        if analysis.fields:
            logger.info(f"📝 Pre-game form detected ({len(analysis.fields)} fields)")
            filler = FormFiller(ctx.humanizer, FieldMapper(ctx.settings.min_field_confidence))
            await filler.fill_form(ctx.page, analysis, ctx.profile)
            await CheckboxHandler(ctx.humanizer).handle_checkboxes(ctx.page, ctx.options)
            if analysis.has_captcha:
                await try_clear_captcha(ctx)
            await submit_form(ctx, analysis.submit_button)
            await ctx.humanizer.page_load_wait()

        game = await InstantWinHandler(ctx.humanizer).play(ctx.page)

        confirmation = await ConfirmationHandler(
            ctx.humanizer,
            ctx.settings.resolved_screenshots_dir(),
            take_screenshots=ctx.options.take_screenshots,
        ).handle(ctx.page, ctx.entry_id)

        if game.won:
            message = f"Won: {game.prize or 'Prize'}"
        elif game.played:
            message = "Game played, did not win"
        else:
            message = "Could not play game"

        return build_result(
            ctx, self.name,
            EntryStatus.CONFIRMED if game.played else EntryStatus.FAILED,
            message,
            confirmation_number=confirmation.confirmation_number,
            screenshot_path=confirmation.screenshot_path,
            instant_win_result=game,
        )
