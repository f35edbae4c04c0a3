"""
Single-page form entry: fill, tick checkboxes, clear a CAPTCHA if there
is one, submit and confirm.
"""

from loguru import logger

from contest_entry.checkbox_handler import CheckboxHandler
from contest_entry.errors import EntryError, ErrorCode
from contest_entry.field_mapper import FieldMapper
from contest_entry.form_filler import FormFiller
from contest_entry.models import EntryResult
from contest_entry.strategies.base import EntryContext, current_analysis, submit_and_confirm, try_clear_captcha


class SimpleFormStrategy:
    name = "simple-form"

    async def execute(self, ctx: EntryContext) -> EntryResult:
        analysis = await current_analysis(ctx)
        if not analysis.fields:
            raise EntryError("No form fields detected on the page", ErrorCode.NO_FORM_FIELDS,
                             ctx.contest.id, ctx.entry_id)

        filler = FormFiller(ctx.humanizer, FieldMapper(ctx.settings.min_field_confidence))
        await filler.fill_form(ctx.page, analysis, ctx.profile)
        await CheckboxHandler(ctx.humanizer).handle_checkboxes(ctx.page, ctx.options)

        # A failed CAPTCHA is recorded, the submit is still attempted
        if analysis.has_captcha:
            await try_clear_captcha(ctx)

        result = await submit_and_confirm(ctx, self.name, analysis.submit_button)
        logger.info(f"📝 Simple form strategy complete: {result.status.value}")
        return result
