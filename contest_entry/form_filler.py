"""
Form filler - executes fill instructions with human-like interaction.
"""

from typing import List, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.field_mapper import FieldMapper
from contest_entry.humanizer import Humanizer
from contest_entry.models import FieldMapping, FormAnalysis, Profile
from contest_entry.timing import INTER_FIELD_DELAY
from contest_entry.utils.simple_logger import slog
from contest_entry.utils.helpers import truncate


SCROLL_INTO_VIEW_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (el) el.scrollIntoView({ behavior: 'smooth', block: 'center' });
}
"""

# Picks the first option whose value or text contains the wanted value
SELECT_PARTIAL_JS = """
([selector, value]) => {
    const select = document.querySelector(selector);
    if (!select) return false;
    const wanted = value.toLowerCase();
    for (const opt of select.options) {
        const v = opt.value.toLowerCase();
        const t = opt.text.toLowerCase();
        if (v === wanted || t === wanted || t.includes(wanted) || v.includes(wanted)) {
            select.value = opt.value;
            select.dispatchEvent(new Event('input', { bubbles: true }));
            select.dispatchEvent(new Event('change', { bubbles: true }));
            return true;
        }
    }
    return false;
}
"""


class FormFiller:
    """Fills a form one field at a time with randomized pacing."""

    def __init__(self, humanizer: Humanizer, mapper: Optional[FieldMapper] = None):
        self.humanizer = humanizer
        self.mapper = mapper or FieldMapper()

    async def fill_form(self, page, analysis: FormAnalysis, profile: Profile) -> List[str]:
        """
        Map the analyzed fields against the profile and fill them in order.

        A field that fails is logged and skipped; the rest still get filled.

        Args:
            page: Playwright page
            analysis: Current page's form analysis
            profile: Profile supplying the values

        Returns:
            Selectors that were filled successfully
        """
        mappings = self.mapper.map_fields(analysis.fields, profile)
        if not mappings:
            logger.warning("⚠️ No field mappings generated, form may be empty or unrecognized")
            return []

        filled = []
        for mapping in mappings:
            try:
                await self.fill_field(page, mapping)
                filled.append(mapping.selector)
                slog.detail_success(f"Filled {mapping.profile_field} → {truncate(mapping.selector, 40)}")
            except PlaywrightError as e:
                logger.warning(f"⚠️ Failed to fill {mapping.selector} ({mapping.method}): {e}")
            mean, std, _, _ = INTER_FIELD_DELAY
            await self.humanizer.gaussian_delay(mean, std)

        logger.info(f"✏️ Filled {len(filled)}/{len(mappings)} fields")
        return filled

    async def fill_field(self, page, mapping: FieldMapping):
        await self.scroll_to(page, mapping.selector)

        if mapping.method == "type":
            await self.humanizer.human_type(page, mapping.selector, mapping.value)
        elif mapping.method == "select":
            await self.select_option(page, mapping.selector, mapping.value)
        elif mapping.method == "click":
            await self.humanizer.click_delay()
            await page.click(mapping.selector)
        elif mapping.method == "check":
            await self.humanizer.click_delay()
            if not await page.is_checked(mapping.selector):
                await page.check(mapping.selector)

    async def select_option(self, page, selector: str, value: str):
        """Select by value, then by visible label, then by partial text."""
        await self.humanizer.click_delay()
        try:
            await page.select_option(selector, value=value)
            return
        except PlaywrightError:
            pass
        try:
            await page.select_option(selector, label=value)
            return
        except PlaywrightError:
            pass
        if not await page.evaluate(SELECT_PARTIAL_JS, [selector, value]):
            raise PlaywrightError(f"No option matching '{value}' in {selector}")

    async def scroll_to(self, page, selector: str):
        try:
            await page.evaluate(SCROLL_INTO_VIEW_JS, selector)
        except PlaywrightError:
            return
        await self.humanizer.scroll_delay()
