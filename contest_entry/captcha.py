"""
CAPTCHA detection, solving and token injection.

The engine only depends on the CaptchaSolver protocol; TwoCaptchaSolver
is one adapter for it.
"""

import asyncio
import ssl
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import aiohttp
import certifi
from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.errors import CaptchaError, ErrorCode
from contest_entry.utils.simple_logger import slog


@dataclass(frozen=True)
class CaptchaChallenge:
    """A visible challenge on the page."""
    type: str  # recaptcha_v2 | hcaptcha | turnstile | image
    site_key: Optional[str]
    page_url: str


class CaptchaSolver(Protocol):
    async def solve(self, challenge: CaptchaChallenge) -> str:
        """Return a solution token (or text for image challenges)."""
        ...


# Only challenges that are actually rendered count; hidden scripts and
# invisible badges are ignored.
DETECT_CAPTCHA_JS = """
() => {
    const result = { found: false, type: null, sitekey: null };

    const isElementVisible = (el) => {
        if (!el) return false;
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return rect.width > 0 && rect.height > 0 &&
               style.display !== 'none' &&
               style.visibility !== 'hidden' &&
               parseFloat(style.opacity) > 0;
    };

    const sitekeyOf = (root) => {
        const el = (root && root.getAttribute && root.getAttribute('data-sitekey')) ? root : document.querySelector('[data-sitekey]');
        return el ? el.getAttribute('data-sitekey') : null;
    };

    const recaptchaFrame = document.querySelector('iframe[src*="recaptcha"][src*="anchor"]');
    if (recaptchaFrame && isElementVisible(recaptchaFrame)) {
        return { found: true, type: 'recaptcha_v2', sitekey: sitekeyOf(document.querySelector('.g-recaptcha')) };
    }

    const gRecaptcha = document.querySelector('.g-recaptcha');
    if (gRecaptcha && isElementVisible(gRecaptcha)) {
        const iframe = gRecaptcha.querySelector('iframe');
        if (iframe && isElementVisible(iframe)) {
            return { found: true, type: 'recaptcha_v2', sitekey: sitekeyOf(gRecaptcha) };
        }
    }

    const hcaptchaFrame = document.querySelector('iframe[src*="hcaptcha"]');
    if (hcaptchaFrame && isElementVisible(hcaptchaFrame)) {
        return { found: true, type: 'hcaptcha', sitekey: sitekeyOf(document.querySelector('.h-captcha')) };
    }

    const turnstile = document.querySelector('.cf-turnstile, iframe[src*="challenges.cloudflare"]');
    if (turnstile && isElementVisible(turnstile)) {
        return { found: true, type: 'turnstile', sitekey: sitekeyOf(document.querySelector('.cf-turnstile')) };
    }

    const image = document.querySelector('img[src*="captcha" i], img[alt*="captcha" i], #captcha img, .captcha img');
    if (image && isElementVisible(image)) {
        return { found: true, type: 'image', sitekey: null };
    }

    return result;
}
"""

INJECT_RECAPTCHA_JS = """
(token) => {
    const field = document.querySelector('#g-recaptcha-response, [name="g-recaptcha-response"]');
    if (field) {
        field.value = token;
        field.innerHTML = token;
    }
    const callbacks = ['onCaptchaSuccess', 'captchaCallback', 'recaptchaCallback'];
    for (const cb of callbacks) {
        if (typeof window[cb] === 'function') window[cb](token);
    }
    const widget = document.querySelector('.g-recaptcha[data-callback]');
    if (widget && typeof window[widget.dataset.callback] === 'function') window[widget.dataset.callback](token);
    return !!field;
}
"""

INJECT_HCAPTCHA_JS = """
(token) => {
    const fields = document.querySelectorAll('[name="h-captcha-response"], [name="g-recaptcha-response"]');
    fields.forEach(f => { f.value = token; });
    if (typeof hcaptcha !== 'undefined') {
        try { hcaptcha.setResponse(token); } catch (e) {}
    }
    return fields.length > 0;
}
"""

INJECT_TURNSTILE_JS = """
(token) => {
    const field = document.querySelector('[name="cf-turnstile-response"]');
    if (field) field.value = token;
    const widget = document.querySelector('.cf-turnstile[data-callback]');
    if (widget && typeof window[widget.dataset.callback] === 'function') window[widget.dataset.callback](token);
    return !!field;
}
"""

INJECT_IMAGE_JS = """
(text) => {
    const input = document.querySelector('input[name*="captcha" i], input[id*="captcha" i]');
    if (!input) return false;
    input.value = text;
    input.dispatchEvent(new Event('input', { bubbles: true }));
    input.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

INJECT_SCRIPTS = {
    "recaptcha_v2": INJECT_RECAPTCHA_JS,
    "hcaptcha": INJECT_HCAPTCHA_JS,
    "turnstile": INJECT_TURNSTILE_JS,
    "image": INJECT_IMAGE_JS,
}


async def detect_captcha(page) -> Optional[CaptchaChallenge]:
    """The visible challenge on the page, or None."""
    try:
        info = await page.evaluate(DETECT_CAPTCHA_JS) or {}
    except PlaywrightError as e:
        logger.debug(f"CAPTCHA detection failed: {e}")
        return None
    if not info.get("found"):
        return None
    return CaptchaChallenge(type=info.get("type") or "unknown", site_key=info.get("sitekey"), page_url=page.url)


async def inject_captcha_token(page, captcha_type: str, token: str) -> bool:
    """Write a solved token into the page and fire any known callback."""
    script = INJECT_SCRIPTS.get(captcha_type)
    if not script:
        return False
    try:
        injected = bool(await page.evaluate(script, token))
    except PlaywrightError as e:
        slog.detail_warning(f"Token injection failed: {str(e)[:50]}")
        return False
    if injected:
        slog.detail_success(f"{captcha_type} token injected")
    return injected


async def solve_captcha(page, solver: Optional[CaptchaSolver]) -> Optional[CaptchaChallenge]:
    """
    Detect, solve and inject.

    Returns:
        The solved challenge, or None when no visible challenge was found

    Raises:
        CaptchaError: CAPTCHA_NO_SOLVER without a solver, CAPTCHA_FAILED if solving
            or injection fails
    """
    challenge = await detect_captcha(page)
    if challenge is None:
        slog.detail("🔍 No visible CAPTCHA detected")
        return None

    logger.info(f"🔒 CAPTCHA detected: {challenge.type}")
    if solver is None:
        raise CaptchaError("CAPTCHA present but no solver configured", ErrorCode.CAPTCHA_NO_SOLVER, challenge.type)

    token = await solver.solve(challenge)
    if not await inject_captcha_token(page, challenge.type, token):
        raise CaptchaError(f"Could not inject {challenge.type} solution", ErrorCode.CAPTCHA_FAILED, challenge.type)

    logger.info(f"🔓 CAPTCHA solved ({challenge.type})")
    return challenge


class TwoCaptchaSolver:
    """2captcha.com adapter: submit to in.php, then poll res.php."""

    SUBMIT_URL = "https://2captcha.com/in.php"
    RESULT_URL = "https://2captcha.com/res.php"

    def __init__(self, api_key: str, poll_interval: float = 5.0, max_polls: int = 24):
        self.api_key = api_key
        self.poll_interval = poll_interval
        self.max_polls = max_polls  # 24 * 5 = 120 seconds

    def submit_params(self, challenge: CaptchaChallenge) -> Dict[str, Any]:
        if not challenge.site_key:
            raise CaptchaError("No sitekey found, cannot use 2captcha", captcha_type=challenge.type)

        params: Dict[str, Any] = {"key": self.api_key, "pageurl": challenge.page_url, "json": 1}
        if challenge.type == "recaptcha_v2":
            params.update(method="userrecaptcha", googlekey=challenge.site_key)
        elif challenge.type == "hcaptcha":
            params.update(method="hcaptcha", sitekey=challenge.site_key)
        elif challenge.type == "turnstile":
            params.update(method="turnstile", sitekey=challenge.site_key)
        else:
            raise CaptchaError(f"Unsupported captcha type for 2captcha: {challenge.type}",
                               captcha_type=challenge.type)
        return params

    async def solve(self, challenge: CaptchaChallenge) -> str:
        params = self.submit_params(challenge)
        ssl_context = ssl.create_default_context(cafile=certifi.where())

        try:
            async with aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=ssl_context)) as session:
                slog.detail(f"📤 Sending captcha to 2captcha (type: {challenge.type})...")
                async with session.get(self.SUBMIT_URL, params=params) as resp:
                    result = await resp.json(content_type=None)

                if result.get("status") != 1:
                    raise CaptchaError(f"2captcha submit failed: {result.get('error_text', result.get('request'))}",
                                       captcha_type=challenge.type)

                result_params = {"key": self.api_key, "action": "get", "id": result.get("request"), "json": 1}
                slog.detail(f"⏳ Captcha submitted (ID: {result_params['id']}), waiting for solution...")

                for _ in range(self.max_polls):
                    await asyncio.sleep(self.poll_interval)
                    async with session.get(self.RESULT_URL, params=result_params) as resp:
                        result = await resp.json(content_type=None)

                    if result.get("status") == 1:
                        slog.detail_success("Got captcha solution")
                        return result.get("request")
                    if result.get("request") != "CAPCHA_NOT_READY":
                        raise CaptchaError(f"2captcha error: {result.get('error_text', result.get('request'))}",
                                           captcha_type=challenge.type)
        except aiohttp.ClientError as e:
            raise CaptchaError(f"2captcha request failed: {e}", captcha_type=challenge.type) from e

        raise CaptchaError(f"2captcha timeout ({self.max_polls * self.poll_interval:.0f}s)",
                           captcha_type=challenge.type)
