"""
Form analyzer - inspects a loaded page and classifies its controls.

Field enumeration happens in the page (DETECT_FIELDS_JS); classification
is pure Python over FormField objects (see form_logic), so any backend
that produces FormFields can reuse it.
"""

from typing import List, Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.form_logic import (
    FIELD_PATTERNS, SUBMIT_SELECTORS, SUBMIT_FALLBACK_SELECTOR, SUBMIT_KEYWORDS,
    CAPTCHA_SELECTORS, FieldPattern, identify_field,
)
from contest_entry.models import AnalyzedField, FormAnalysis, FormField


# Enumerates visible, targetable controls. Honeypots (zero size, display:none,
# visibility:hidden, opacity 0, or absolutely positioned far off-screen) are dropped.
# Label priority: label[for], wrapping label, aria-label, adjacent text.
DETECT_FIELDS_JS = r"""
() => {
    const result = [];
    const seen = new Set();

    const isHoneypot = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') return true;
        if (el.offsetWidth === 0 || el.offsetHeight === 0) return true;
        if (style.position === 'absolute' || style.position === 'fixed') {
            const left = parseInt(style.left, 10);
            const top = parseInt(style.top, 10);
            if ((!isNaN(left) && left < -1000) || (!isNaN(top) && top < -1000)) return true;
        }
        const rect = el.getBoundingClientRect();
        return rect.right < -1000 || rect.bottom < -1000;
    };

    const labelFor = (el) => {
        if (el.id) {
            const explicit = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
            if (explicit && explicit.textContent.trim()) return explicit.textContent.trim();
        }
        const wrapping = el.closest('label');
        if (wrapping && wrapping.textContent.trim()) return wrapping.textContent.trim();
        const aria = el.getAttribute('aria-label');
        if (aria) return aria.trim();
        const prev = el.previousElementSibling;
        if (prev && prev.textContent && prev.textContent.trim().length < 80) return prev.textContent.trim();
        const next = el.nextSibling;
        if (next && next.nodeType === Node.TEXT_NODE && next.textContent.trim()) return next.textContent.trim();
        return '';
    };

    const radioGroups = {};

    document.querySelectorAll('input, select, textarea').forEach((el) => {
        const tag = el.tagName.toLowerCase();
        const type = (tag === 'input' ? (el.type || 'text') : tag).toLowerCase();
        if (['hidden', 'submit', 'button', 'reset', 'image'].includes(type)) return;
        if (isHoneypot(el)) return;

        const name = el.name || '';
        const id = el.id || '';

        if (type === 'radio') {
            if (!name) return;
            const group = radioGroups[name] || (radioGroups[name] = {
                selector: `input[type="radio"][name="${CSS.escape(name)}"]`,
                type: 'radio', name, id: '', placeholder: '',
                label: '', autocomplete: el.autocomplete || '',
                required: false, options: []
            });
            group.required = group.required || el.required;
            const fieldset = el.closest('fieldset');
            const legend = fieldset ? fieldset.querySelector('legend') : null;
            if (!group.label && legend) group.label = legend.textContent.trim();
            group.options.push({ value: el.value, text: labelFor(el) });
            return;
        }

        let selector = '';
        if (id) selector = `#${CSS.escape(id)}`;
        else if (name) selector = `${tag}[name="${CSS.escape(name)}"]`;
        else return;

        if (seen.has(selector)) return;
        seen.add(selector);

        const options = [];
        if (tag === 'select') {
            for (const opt of el.options) {
                if (opt.value) options.push({ value: opt.value, text: (opt.textContent || '').trim() });
            }
        }

        result.push({
            selector, type, name, id,
            placeholder: el.placeholder || '',
            label: labelFor(el),
            autocomplete: el.getAttribute('autocomplete') || '',
            required: !!el.required,
            options
        });
    });

    Object.values(radioGroups).forEach((group) => result.push(group));
    return result;
}
"""

FIND_SUBMIT_BY_TEXT_JS = r"""
(keywords) => {
    const buttons = document.querySelectorAll('button, input[type="button"], input[type="submit"], a.btn');
    for (const btn of buttons) {
        const text = (btn.textContent || '').toLowerCase().trim();
        const value = (btn.value || '').toLowerCase();
        const combined = `${text} ${value}`;
        if (!keywords.some(k => combined.includes(k))) continue;
        if (btn.id) return `#${CSS.escape(btn.id)}`;
        const cn = typeof btn.className === 'string' ? btn.className.trim() : '';
        if (cn) return btn.tagName.toLowerCase() + cn.split(/\s+/).map(c => `.${CSS.escape(c)}`).join('');
        return btn.tagName.toLowerCase();
    }
    return '';
}
"""

# Picks the form with the most visible inputs on multi-form pages
FIND_FORM_JS = r"""
() => {
    const forms = Array.from(document.querySelectorAll('form'));
    if (forms.length === 0) return 'body';
    let best = forms[0];
    let bestCount = -1;
    for (const form of forms) {
        const count = form.querySelectorAll('input:not([type="hidden"]), select, textarea').length;
        if (count > bestCount) {
            bestCount = count;
            best = form;
        }
    }
    if (best.id) return `#${CSS.escape(best.id)}`;
    if (best.name) return `form[name="${CSS.escape(best.name)}"]`;
    return 'form';
}
"""

DETECT_MULTI_STEP_JS = r"""
() => {
    const body = (document.body.textContent || '').toLowerCase();
    if (/step\s+\d+\s+(of|\/)\s+\d+/i.test(body)) return true;
    if (document.querySelector('.progress, .steps, .wizard, .step-indicator, [class*="progress"], [class*="wizard"]')) return true;
    for (const btn of document.querySelectorAll('button:not([type="submit"])')) {
        const text = (btn.textContent || '').toLowerCase().trim();
        if (text === 'next' || text === 'continue' || text.includes('next step')) return true;
    }
    return false;
}
"""

DETECT_TERMS_CHECKBOX_JS = r"""
() => {
    for (const cb of document.querySelectorAll('input[type="checkbox"]')) {
        const label = cb.closest('label');
        const sibling = cb.nextElementSibling;
        const text = `${label ? label.textContent : ''} ${sibling ? sibling.textContent : ''}`.toLowerCase();
        if (['terms', 'rules', 'agree', 'accept', 'conditions'].some(k => text.includes(k))) return true;
    }
    return false;
}
"""

DETECT_CAPTCHA_MARKUP_JS = r"""
() => {
    const html = document.documentElement.innerHTML.toLowerCase();
    return html.includes('recaptcha') || html.includes('hcaptcha') || html.includes('turnstile');
}
"""


class FormAnalyzer:
    """
    Produces a FormAnalysis for the page as it is right now.

    Forms mutate between steps, so callers re-run analyze_form at every
    navigation or step boundary.
    """

    def __init__(
        self,
        patterns: Sequence[FieldPattern] = FIELD_PATTERNS,
        submit_selectors: Sequence[str] = SUBMIT_SELECTORS,
        captcha_selectors: Sequence[str] = CAPTCHA_SELECTORS,
    ):
        self.patterns = tuple(patterns)
        self.submit_selectors = tuple(submit_selectors)
        self.captcha_selectors = tuple(captcha_selectors)

    async def analyze_form(self, page) -> FormAnalysis:
        """
        Inspect the page and classify every visible control.

        Args:
            page: Playwright page

        Returns:
            FormAnalysis for the current DOM
        """
        fields = self.classify_fields(await self.detect_fields(page))

        analysis = FormAnalysis(
            fields=fields,
            submit_button=await self.find_submit_button(page),
            form_selector=await self.find_form_selector(page),
            is_multi_step=await self._probe(page, DETECT_MULTI_STEP_JS),
            has_terms_checkbox=await self._probe(page, DETECT_TERMS_CHECKBOX_JS),
            has_captcha=await self.detect_captcha(page),
            has_file_upload=await self._is_visible(page, 'input[type="file"]'),
        )

        mapped = sum(1 for f in fields if f.mapped_profile_field != "unknown")
        logger.info(
            f"🔍 Form analysis: {len(fields)} fields ({mapped} mapped), "
            f"multi-step={analysis.is_multi_step}, captcha={analysis.has_captcha}"
        )
        return analysis

    async def detect_fields(self, page) -> List[FormField]:
        try:
            raw = await page.evaluate(DETECT_FIELDS_JS)
        except PlaywrightError as e:
            logger.warning(f"⚠️ Field detection failed: {e}")
            return []
        return [FormField(**item) for item in (raw or [])]

    def classify_fields(self, fields: Sequence[FormField]) -> List[AnalyzedField]:
        """Attach a profile attribute and confidence to each field. No page needed."""
        analyzed = []
        for field in fields:
            profile_field, confidence = identify_field(field, self.patterns)
            analyzed.append(AnalyzedField(
                **field.model_dump(),
                mapped_profile_field=profile_field,
                confidence=confidence,
            ))
            logger.debug(f"   {field.selector} → {profile_field} ({confidence:.2f})")
        return analyzed

    async def find_submit_button(self, page) -> str:
        for selector in self.submit_selectors:
            if await self._is_visible(page, selector):
                return selector

        try:
            by_text = await page.evaluate(FIND_SUBMIT_BY_TEXT_JS, list(SUBMIT_KEYWORDS))
            if by_text:
                return by_text
        except PlaywrightError as e:
            logger.debug(f"Submit text search failed: {e}")

        return SUBMIT_FALLBACK_SELECTOR

    async def find_form_selector(self, page) -> str:
        try:
            return await page.evaluate(FIND_FORM_JS) or "form"
        except PlaywrightError:
            return "form"

    async def detect_captcha(self, page) -> bool:
        for selector in self.captcha_selectors:
            if await self._is_visible(page, selector):
                return True
        return await self._probe(page, DETECT_CAPTCHA_MARKUP_JS)

    async def _probe(self, page, script: str) -> bool:
        try:
            return bool(await page.evaluate(script))
        except PlaywrightError as e:
            logger.debug(f"Page probe failed: {e}")
            return False

    @staticmethod
    async def _is_visible(page, selector: str) -> bool:
        try:
            return await page.is_visible(selector)
        except PlaywrightError:
            return False

