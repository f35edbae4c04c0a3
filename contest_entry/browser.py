"""
Browser resources with stealth features.

The orchestrator only sees the BrowserContextProvider protocol; the
Playwright implementation below launches one Chromium lazily and hands
out a fresh context and page per attempt.
"""

import asyncio
import platform
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from loguru import logger
from playwright.async_api import (
    async_playwright, Browser, BrowserContext, Page, Playwright,
    Error as PlaywrightError,
)

from contest_entry.errors import NavigationError
from contest_entry.utils.helpers import new_entry_id
from contest_entry.utils.simple_logger import slog


LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
]

STEALTH_SCRIPT = """
// Override navigator.webdriver
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined,
});

// Override navigator.plugins
Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

// Override navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});

// Fix chrome.runtime
window.chrome = {
    runtime: {},
};

// Fix permissions
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) => (
    parameters.name === 'notifications' ?
        Promise.resolve({ state: Notification.permission }) :
        originalQuery(parameters)
);
"""

# (substring of the Playwright error, human-readable reason), checked in order
NAVIGATION_ERRORS = (
    ("ERR_CERT", "SSL certificate error"),
    ("ERR_NAME_NOT_RESOLVED", "Domain not found"),
    ("ERR_CONNECTION_REFUSED", "Connection refused"),
    ("ERR_CONNECTION_TIMED_OUT", "Connection timed out"),
    ("Timeout", "Connection timed out"),
    ("ERR_ABORTED", "Page load aborted"),
    ("Target page, context or browser has been closed", "Browser was closed"),
    ("ERR_TOO_MANY_REDIRECTS", "Too many redirects"),
    ("ERR_EMPTY_RESPONSE", "Empty response from server"),
)


def classify_navigation_error(error_str: str) -> str:
    for marker, reason in NAVIGATION_ERRORS:
        if marker in error_str:
            return reason
    return f"Navigation failed: {error_str[:100]}"


def default_user_agent() -> str:
    """Platform-appropriate user agent to avoid detection."""
    system = platform.system()
    if system == "Darwin":
        return "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    if system == "Linux":
        return "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    return "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


@dataclass
class BrowserSession:
    """A browser context and page owned by one attempt."""
    page: Any
    context: Any = None
    id: str = field(default_factory=new_entry_id)
    proxy_id: Optional[str] = None


class BrowserContextProvider(Protocol):
    async def acquire(self, proxy_id: Optional[str] = None) -> BrowserSession:
        ...

    async def release(self, session: BrowserSession) -> None:
        ...


class PlaywrightBrowserProvider:
    """
    Browser automation with stealth features.
    Designed to bypass bot detection.
    """

    def __init__(self, headless: bool = True, proxies: Optional[Dict[str, str]] = None,
                 page_timeout_ms: int = 30_000):
        """
        Args:
            headless: Run browser in headless mode
            proxies: proxy id -> proxy server URL
            page_timeout_ms: Default timeout for page actions
        """
        self.headless = headless
        self.proxies = proxies or {}
        self.page_timeout_ms = page_timeout_ms
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._launch_lock:
            if self.browser:
                return self.browser

            slog.detail(f"🚀 Starting Playwright engine (headless={self.headless})...")
            self.playwright = await async_playwright().start()

            launch_options: Dict[str, Any] = {"headless": self.headless, "args": list(LAUNCH_ARGS)}
            try:
                self.browser = await self.playwright.chromium.launch(**launch_options)
                slog.detail_success("Browser launched (Playwright Chromium)")
            except PlaywrightError as e:
                slog.detail_warning(f"Could not launch bundled Chromium: {e}")
                slog.detail("🔄 Trying system Chrome as fallback...")
                launch_options["channel"] = "chrome"
                self.browser = await self.playwright.chromium.launch(**launch_options)
                slog.detail_success("Browser launched (system Chrome)")
            return self.browser

    async def acquire(self, proxy_id: Optional[str] = None) -> BrowserSession:
        """Open a fresh stealth context and page, optionally behind a proxy."""
        browser = await self._ensure_browser()

        context_options: Dict[str, Any] = {
            "viewport": {"width": 1920, "height": 1080},
            "user_agent": default_user_agent(),
            "locale": "en-US",
            "timezone_id": "America/New_York",
            "ignore_https_errors": True,
        }
        if proxy_id:
            server = self.proxies.get(proxy_id)
            if not server:
                raise ValueError(f"Unknown proxy id: {proxy_id}")
            context_options["proxy"] = {"server": server}

        context: BrowserContext = await browser.new_context(**context_options)
        await context.add_init_script(STEALTH_SCRIPT)
        page: Page = await context.new_page()
        page.set_default_timeout(self.page_timeout_ms)
        page.on("dialog", lambda dialog: asyncio.create_task(dialog.accept()))

        session = BrowserSession(page=page, context=context, proxy_id=proxy_id)
        slog.detail(f"Browser context {session.id[:8]} acquired")
        return session

    async def release(self, session: BrowserSession):
        try:
            await session.context.close()
            slog.detail(f"Browser context {session.id[:8]} released")
        except PlaywrightError as e:
            logger.debug(f"Context close note: {e}")

    async def close(self):
        """Close browser and cleanup gracefully."""
        if self.browser:
            try:
                await self.browser.close()
            except PlaywrightError:
                pass  # Browser might already be closed
            self.browser = None

        if self.playwright:
            await self.playwright.stop()
            self.playwright = None

        slog.detail("Browser closed")


async def navigate(page, url: str, timeout_ms: int = 30_000, wait_until: str = "domcontentloaded"):
    """
    Navigate to a URL.

    Raises:
        NavigationError: with a classified reason if the page can't be loaded
    """
    slog.detail(f"Navigating to: {url}")
    try:
        response = await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
    except PlaywrightError as e:
        reason = classify_navigation_error(str(e))
        slog.detail_warning(f"Navigation error: {reason}")
        raise NavigationError(reason, url) from e

    if response is not None and not response.ok:
        # Error pages often still carry the form
        slog.detail_warning(f"Page status: {response.status}")
    else:
        slog.detail_success(f"Page loaded: {url}")
    return response


async def take_screenshot(page, directory: str, name: str = "screenshot") -> Optional[str]:
    """Take a screenshot; returns the file path, or None on failure."""
    try:
        screenshots_dir = Path(directory)
        screenshots_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = screenshots_dir / f"{name}_{timestamp}.png"

        await page.screenshot(path=str(filepath), full_page=False)
        slog.detail(f"Screenshot saved: {filepath}")
        return str(filepath)
    except (PlaywrightError, OSError) as e:
        slog.detail_warning(f"Screenshot error: {e}")
        return None
