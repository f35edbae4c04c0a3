"""
Checkbox handler for terms acceptance, age verification, bonus entries,
newsletter opt-ins and data-sharing consent.
"""

from typing import Dict, List, Optional, Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.config import EntryOptions
from contest_entry.form_logic import CHECKBOX_RULES, CheckboxRule, categorize_checkbox, should_check_checkbox
from contest_entry.humanizer import Humanizer
from contest_entry.models import CheckboxClassification


# Bound for each check/click so a hidden native input falls through to
# the label fallback instead of waiting out the page default.
CHECKBOX_ACTION_TIMEOUT_MS = 2_500

# Label resolution: label[for], wrapping label, adjacent text node,
# next element sibling, aria-label. Hidden boxes are kept only when a
# <label> can toggle them (custom-styled checkboxes); unlabeled hidden
# boxes are honeypots.
DETECT_CHECKBOXES_JS = r"""
() => {
    const result = [];

    const isHidden = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return true;
        if (el.offsetWidth === 0 || el.offsetHeight === 0) return true;
        const rect = el.getBoundingClientRect();
        return rect.right < -1000 || rect.bottom < -1000;
    };

    const hasLabelElement = (el) => {
        if (el.id && document.querySelector(`label[for="${CSS.escape(el.id)}"]`)) return true;
        return Boolean(el.closest('label'));
    };

    document.querySelectorAll('input[type="checkbox"]').forEach((cb) => {
        let selector = '';
        if (cb.id) selector = `#${CSS.escape(cb.id)}`;
        else if (cb.name) selector = `input[type="checkbox"][name="${CSS.escape(cb.name)}"]`;
        else return;
        if (isHidden(cb) && !hasLabelElement(cb)) return;

        let labelText = '';
        if (cb.id) {
            const label = document.querySelector(`label[for="${CSS.escape(cb.id)}"]`);
            if (label) labelText = (label.textContent || '').trim();
        }
        if (!labelText) {
            const parent = cb.closest('label');
            if (parent) labelText = (parent.textContent || '').trim();
        }
        if (!labelText) {
            const next = cb.nextSibling;
            if (next && next.nodeType === Node.TEXT_NODE) labelText = (next.textContent || '').trim();
        }
        if (!labelText && cb.nextElementSibling) {
            labelText = (cb.nextElementSibling.textContent || '').trim();
        }
        if (!labelText) labelText = cb.getAttribute('aria-label') || '';

        result.push({ selector, labelText: labelText.replace(/\s+/g, ' ') });
    });
    return result;
}
"""

CLICK_LABEL_JS = r"""
(selector) => {
    const input = document.querySelector(selector);
    if (!input) return false;
    if (input.id) {
        const label = document.querySelector(`label[for="${CSS.escape(input.id)}"]`);
        if (label) { label.click(); return true; }
    }
    const parent = input.closest('label');
    if (parent) { parent.click(); return true; }
    return false;
}
"""

FORCE_CHECK_JS = r"""
(selector) => {
    const input = document.querySelector(selector);
    if (!input) return false;
    input.checked = true;
    input.dispatchEvent(new Event('input', { bubbles: true }));
    input.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""


class CheckboxHandler:
    """Classifies every checkbox on the page and checks the ones policy allows."""

    def __init__(self, humanizer: Humanizer, rules: Sequence[CheckboxRule] = CHECKBOX_RULES):
        self.humanizer = humanizer
        self.rules = tuple(rules)

    async def handle_checkboxes(self, page, options: Optional[EntryOptions] = None) -> List[CheckboxClassification]:
        """
        Detect, classify and check the page's checkboxes.

        Args:
            page: Playwright page
            options: Caller flags for newsletter and data-sharing boxes

        Returns:
            One classification per detected checkbox
        """
        classified = self.classify_checkboxes(await self.detect_checkboxes(page), options)

        checked = 0
        for checkbox in classified:
            if not checkbox.should_check:
                logger.debug(f"   Skipping {checkbox.category} checkbox {checkbox.selector}")
                continue
            try:
                await self.check_checkbox(page, checkbox.selector)
                checked += 1
                logger.debug(f"   ☑️ Checked {checkbox.category}: {checkbox.label_text[:50]}")
            except PlaywrightError as e:
                logger.warning(f"⚠️ Could not check {checkbox.category} checkbox {checkbox.selector}: {e}")

        if classified:
            logger.info(f"☑️ Checkboxes: {checked}/{len(classified)} checked")
        return classified

    async def detect_checkboxes(self, page) -> List[Dict[str, str]]:
        try:
            return await page.evaluate(DETECT_CHECKBOXES_JS) or []
        except PlaywrightError as e:
            logger.warning(f"⚠️ Checkbox detection failed: {e}")
            return []

    def classify_checkboxes(self, raw: Sequence[Dict[str, str]],
                            options: Optional[EntryOptions] = None) -> List[CheckboxClassification]:
        options = options or EntryOptions()
        result = []
        for item in raw:
            label_text = item.get("labelText", "")
            category = categorize_checkbox(label_text, self.rules)
            result.append(CheckboxClassification(
                selector=item["selector"],
                category=category,
                label_text=label_text,
                should_check=should_check_checkbox(
                    category, options.check_newsletter_for_bonus, options.share_data_with_partners
                ),
            ))
        return result

    async def check_checkbox(self, page, selector: str):
        """
        Check one box. Each fallback runs only if the previous step raised:
        native check, direct click, clicking its label, then setting
        `checked` in the DOM.
        """
        await self.humanizer.click_delay()
        try:
            if not await page.is_checked(selector, timeout=CHECKBOX_ACTION_TIMEOUT_MS):
                await page.check(selector, timeout=CHECKBOX_ACTION_TIMEOUT_MS)
            return
        except PlaywrightError as e:
            logger.debug(f"Native check failed for {selector}: {e}")

        try:
            await page.click(selector, timeout=CHECKBOX_ACTION_TIMEOUT_MS)
            return
        except PlaywrightError as e:
            logger.debug(f"Click failed for {selector}: {e}")

        try:
            if await page.evaluate(CLICK_LABEL_JS, selector):
                return
        except PlaywrightError as e:
            logger.debug(f"Label click failed for {selector}: {e}")

        if not await page.evaluate(FORCE_CHECK_JS, selector):
            raise PlaywrightError(f"Checkbox not found: {selector}")
