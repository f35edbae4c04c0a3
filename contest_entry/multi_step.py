"""
Multi-step form handler.

Drives wizard-style and paginated forms: every iteration re-analyzes the
current DOM, fills it, handles its checkboxes, then advances. Step and
redirect caps keep an attempt from looping forever.
"""

from typing import Awaitable, Callable, List, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from contest_entry.checkbox_handler import CheckboxHandler
from contest_entry.config import EntryOptions, Settings
from contest_entry.form_analyzer import FormAnalyzer
from contest_entry.form_filler import FormFiller
from contest_entry.form_logic import NEXT_BUTTON_SELECTORS, NEXT_KEYWORDS, is_last_step
from contest_entry.humanizer import Humanizer
from contest_entry.models import FormAnalysis, MultiStepOutcome, Profile, StepInfo
from contest_entry.utils.simple_logger import slog


STEP_INFO_JS = r"""
(keywords) => {
    const body = document.body ? (document.body.textContent || '') : '';
    const match = body.match(/step\s+(\d+)\s+(?:of|\/)\s+(\d+)/i);
    const info = {
        current_step: match ? parseInt(match[1], 10) : 1,
        total_steps: match ? parseInt(match[2], 10) : null,
        has_next: false,
        next_button_selector: null
    };
    const candidates = document.querySelectorAll('button, input[type="button"], input[type="submit"], a.btn');
    for (const el of candidates) {
        const combined = `${(el.textContent || '').toLowerCase().trim()} ${(el.value || '').toLowerCase()}`;
        if (keywords.some(k => combined.includes(k))) {
            info.has_next = true;
            info.next_button_selector = el.id ? `#${CSS.escape(el.id)}` : null;
            break;
        }
    }
    return info;
}
"""

FIND_NEXT_BY_TEXT_JS = r"""
(keywords) => {
    const elements = document.querySelectorAll('button, input[type="button"], input[type="submit"], a.btn, a.button');
    for (const el of elements) {
        const text = (el.textContent || '').toLowerCase().trim();
        const value = (el.value || '').toLowerCase();
        if (keywords.some(k => text.includes(k) || value.includes(k))) {
            return el.id ? `#${CSS.escape(el.id)}` : null;
        }
    }
    return null;
}
"""

CLICK_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (el) el.click();
    return !!el;
}
"""

# Same-origin iframes only; cross-origin documents throw and are skipped
IFRAME_FORM_JS = """
() => {
    for (const iframe of document.querySelectorAll('iframe')) {
        try {
            const doc = iframe.contentDocument;
            if (doc && doc.querySelector('form')) return true;
        } catch (e) {}
    }
    return false;
}
"""

MODAL_JS = """
() => {
    const selectors = [
        '.modal.show', '.modal.active', '.modal.visible', '[class*="modal"][class*="open"]',
        '.popup.show', '.popup.active', '.popup.visible', '[class*="popup"][class*="open"]',
        '.overlay.show', '.overlay.active', '[role="dialog"][aria-modal="true"]'
    ];
    for (const sel of selectors) {
        const el = document.querySelector(sel);
        if (!el) continue;
        const style = window.getComputedStyle(el);
        if (style.display !== 'none' && style.visibility !== 'hidden') return true;
    }
    return false;
}
"""

CaptchaHook = Callable[[object, FormAnalysis], Awaitable[None]]


class MultiStepHandler:
    """Bounded step loop over analyzer, filler and checkbox handler."""

    def __init__(
        self,
        analyzer: FormAnalyzer,
        filler: FormFiller,
        checkbox_handler: CheckboxHandler,
        humanizer: Humanizer,
        settings: Optional[Settings] = None,
        captcha_hook: Optional[CaptchaHook] = None,
        next_selectors=NEXT_BUTTON_SELECTORS,
    ):
        self.analyzer = analyzer
        self.filler = filler
        self.checkbox_handler = checkbox_handler
        self.humanizer = humanizer
        self.settings = settings or Settings()
        self.captcha_hook = captcha_hook
        self.next_selectors = tuple(next_selectors)

    async def run(self, page, profile: Profile, options: Optional[EntryOptions] = None) -> MultiStepOutcome:
        """
        Fill and advance through steps until the last one is reached.

        Stops when no next control exists (the last step), or when the step
        or redirect cap is hit. iframe and modal forms are reported on the
        outcome but never end the loop.
        """
        max_steps = self.settings.max_steps
        max_redirects = self.settings.max_redirects

        outcome = MultiStepOutcome(stop_reason="max-steps")
        filled: List[str] = []
        previous_url = page.url

        while outcome.steps < max_steps:
            outcome.steps += 1
            step = outcome.steps

            if await self._probe(page, IFRAME_FORM_JS):
                outcome.iframe_form_detected = True
                logger.info("🪟 Form-containing iframe detected")

            step_info = await self.detect_step_info(page)
            total = f"/{step_info.total_steps}" if step_info.total_steps else ""
            slog.detail(f"Step info: {step_info.current_step}{total}, has_next={step_info.has_next}")

            analysis = await self.analyzer.analyze_form(page)
            if analysis.has_captcha and self.captcha_hook:
                await self.captcha_hook(page, analysis)

            step_filled: List[str] = []
            if analysis.fields:
                step_filled = await self.filler.fill_form(page, analysis, profile)
                filled.extend(step_filled)
                await self.checkbox_handler.handle_checkboxes(page, options)
            slog.step_simple(step, f"filled {len(step_filled)} fields")

            if not step_info.has_next or is_last_step(step_info.current_step, step_info.total_steps):
                logger.info(f"🏁 Last step reached at step {step}")
                outcome.stop_reason = "last-step"
                break

            next_selector = step_info.next_button_selector or await self.find_next_button(page)
            if not next_selector:
                logger.info(f"🏁 No next button on step {step}, assuming last step")
                outcome.stop_reason = "no-next-button"
                break

            slog.step_simple(step, "next", next_selector)
            await self.click_next(page, next_selector)
            await self.wait_for_transition(page)

            current_url = page.url
            if current_url != previous_url:
                outcome.redirects += 1
                previous_url = current_url
                if outcome.redirects > max_redirects:
                    logger.warning(f"⚠️ Too many redirects ({outcome.redirects}), stopping")
                    outcome.stop_reason = "max-redirects"
                    break

            if await self._probe(page, MODAL_JS):
                outcome.modal_detected = True
                logger.info("🪟 Modal detected, handling it on the next step")
        else:
            logger.warning(f"⚠️ Reached maximum step count ({max_steps}), stopping")

        outcome.fields_filled = filled
        logger.info(f"📑 Multi-step complete: {outcome.steps} steps, {len(filled)} fields ({outcome.stop_reason})")
        return outcome

    async def detect_step_info(self, page) -> StepInfo:
        try:
            raw = await page.evaluate(STEP_INFO_JS, list(NEXT_KEYWORDS))
        except PlaywrightError as e:
            logger.debug(f"Step info detection failed: {e}")
            return StepInfo()
        return StepInfo(**raw) if raw else StepInfo()

    async def find_next_button(self, page) -> Optional[str]:
        """Prioritized selectors, then a text search, scrolling once if nothing shows."""
        for attempt in range(2):
            for selector in self.next_selectors:
                try:
                    if await page.is_visible(selector):
                        return selector
                except PlaywrightError:
                    continue
            try:
                by_text = await page.evaluate(FIND_NEXT_BY_TEXT_JS, list(NEXT_KEYWORDS))
                if by_text:
                    return by_text
            except PlaywrightError as e:
                logger.debug(f"Next button text search failed: {e}")
            if attempt == 0:
                await self.humanizer.human_scroll(page)
        return None

    async def click_next(self, page, selector: str):
        try:
            await self.humanizer.human_click(page, selector)
        except PlaywrightError as e:
            logger.debug(f"Human click on {selector} failed, using DOM click: {e}")
            await page.evaluate(CLICK_JS, selector)

    async def wait_for_transition(self, page):
        """Wait for a navigation, or the settle window if the step swaps in place."""
        try:
            await self.humanizer.deadline.run(
                page.wait_for_event("framenavigated", timeout=self.settings.step_navigation_wait_ms)
            )
        except PlaywrightTimeoutError:
            logger.debug("No navigation after next click, step updated in place")
        await self.humanizer.page_load_wait()

    async def _probe(self, page, script: str) -> bool:
        try:
            return bool(await page.evaluate(script))
        except PlaywrightError:
            return False
