"""
Instant-win game handler.

Recognizes spin wheels, scratch-offs, click-to-reveal and match games,
plays them with humanized input and reads the win/lose text afterwards.
"""

import random
import re
from typing import List, Optional, Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.humanizer import Humanizer, Point
from contest_entry.models import InstantWinResult


ANIMATION_WAIT_MS = 5_000
ANIMATION_MAX_WAIT_MS = 10_000

SPIN_SELECTORS = (
    'canvas[id*="wheel" i]', 'canvas[class*="wheel" i]',
    '.spin-wheel', '.wheel-container', '#wheel',
    '[class*="spin"]', '[id*="spin"]',
    'canvas[id*="spin" i]',
)

SPIN_BUTTON_SELECTORS = (
    'button:has-text("Spin")', 'a:has-text("Spin")',
    '.spin-button', '.btn-spin', '.spin-btn', '#spinButton',
    'button[id*="spin" i]', 'button[class*="spin" i]',
)

SCRATCH_SELECTORS = (
    'canvas[id*="scratch" i]', 'canvas[class*="scratch" i]',
    '.scratch-card', '.scratch-container', '#scratch',
    '[class*="scratch"]',
)

REVEAL_SELECTORS = (
    '.reveal-button', '.reveal-card', '.click-to-reveal',
    'button:has-text("Reveal")', 'button:has-text("Click")', 'a:has-text("Reveal")',
    '.flip-card', '.prize-card', '.mystery-box',
    '[class*="reveal"]', '[class*="flip"]',
)

TILE_SELECTORS = (
    '.game-tile', '.match-card', '.memory-card', '.game-card',
    '[class*="tile"]', '[class*="card"]',
)

PLAY_BUTTON_SELECTORS = (
    'button:has-text("Play")', 'button:has-text("Start")',
    'a:has-text("Play")', 'a:has-text("Start")',
    '.play-button', '.start-button', '.btn-play',
    'button[id*="play" i]', 'button[class*="play" i]',
)

WIN_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\bcongratulations\b", r"\byou\s*(?:have\s*)?won\b", r"\bwinner\b", r"\byou\s*win\b",
    r"\bprize\s*won\b", r"\bclaim\s*your\s*prize\b", r"\byou're\s*a\s*winner\b", r"\bwinning\b",
))

LOSE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\bsorry\b", r"\bbetter\s*luck\b", r"\btry\s*again\b", r"\bnot\s*(?:a\s*)?winner\b",
    r"\bno\s*prize\b", r"\bunfortunately\b", r"\bdidn'?t\s*win\b", r"\bcome\s*back\b", r"\bplay\s*again\b",
))

PRIZE_PATTERNS = (
    re.compile(r"(?:you\s*(?:have\s*)?won|prize[:\s]+|congratulations[!,\s]+)(.{5,100}?)(?:\.|!|$)", re.I),
    re.compile(r"\$[\d,]+(?:\.\d{2})?"),
    re.compile(r"win(?:ner of|ning)?\s+(?:a\s+)?(.{5,100}?)(?:\.|!|$)", re.I),
)

PAGE_TEXT_JS = "() => document.body ? (document.body.textContent || '') : ''"

BOUNDS_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const r = el.getBoundingClientRect();
    return { x: r.x, y: r.y, width: r.width, height: r.height };
}
"""

# Resolves once no animation is running, or after maxMs
ANIMATIONS_DONE_JS = """
(maxMs) => new Promise((resolve) => {
    const check = () => {
        const running = document.getAnimations().filter(a => a.playState === 'running');
        if (running.length === 0) { resolve(true); return; }
        setTimeout(check, 500);
    };
    setTimeout(() => resolve(false), maxMs);
    check();
})
"""


def detect_game_type_from_text(text: str) -> str:
    text = (text or "").lower()
    if "spin the wheel" in text or "spin to win" in text:
        return "spin-wheel"
    if "scratch" in text:
        return "scratch-off"
    if "click to reveal" in text or "flip" in text or "reveal your" in text:
        return "click-reveal"
    if "match" in text or "memory game" in text:
        return "match-game"
    return "unknown"


def extract_prize(text: str) -> str:
    for pattern in PRIZE_PATTERNS:
        match = pattern.search(text)
        if match:
            return (match.group(1) if match.groups() else match.group(0)).strip()
    return "Prize won (details unavailable)"


def classify_game_result(text: str, game_type: str = "unknown") -> InstantWinResult:
    """Read win/lose from the page text after a game was played."""
    text = re.sub(r"\s+", " ", text or "")
    if any(p.search(text) for p in WIN_PATTERNS):
        return InstantWinResult(played=True, won=True, prize=extract_prize(text), game_type=game_type)
    return InstantWinResult(played=True, won=False, game_type=game_type)


def scratch_path(x: float, y: float, width: float, height: float, passes: int = 8) -> List[Point]:
    """Zigzag across the card, then back again offset vertically."""
    points: List[Point] = [(x + width / 2, y + height / 2)]
    for i in range(passes):
        row = 0.3 if i % 2 == 0 else 0.7
        points.append((x + width * i / passes + random.random() * 20, y + height * row + random.random() * 10))
    for i in reversed(range(passes)):
        row = 0.6 if i % 2 == 0 else 0.4
        points.append((x + width * i / passes + random.random() * 20, y + height * row + random.random() * 10))
    return points


class InstantWinHandler:
    """Plays whatever instant-win game the page shows."""

    def __init__(self, humanizer: Humanizer):
        self.humanizer = humanizer

    async def play(self, page) -> InstantWinResult:
        game_type = await self.detect_game_type(page)
        logger.info(f"🎰 Instant-win game type: {game_type}")

        if game_type == "spin-wheel":
            return await self._click_and_read(page, SPIN_BUTTON_SELECTORS, game_type)
        if game_type == "scratch-off":
            return await self.play_scratch_off(page)
        if game_type == "click-reveal":
            return await self._click_and_read(page, REVEAL_SELECTORS, game_type)
        if game_type == "match-game":
            return await self.play_match_game(page)
        return await self._click_and_read(page, PLAY_BUTTON_SELECTORS, game_type)

    async def detect_game_type(self, page) -> str:
        for game_type, selectors in (
            ("spin-wheel", SPIN_SELECTORS),
            ("scratch-off", SCRATCH_SELECTORS),
            ("click-reveal", REVEAL_SELECTORS),
        ):
            if await self.find_element(page, selectors):
                return game_type
        return detect_game_type_from_text(await self._page_text(page))

    async def _click_and_read(self, page, selectors: Sequence[str], game_type: str) -> InstantWinResult:
        """Spin, reveal and generic play all reduce to: click the control, wait, read."""
        target = await self.find_element(page, selectors)
        if not target:
            logger.warning(f"⚠️ No playable control found for {game_type}")
            return InstantWinResult(played=False, game_type=game_type)

        await self.humanizer.human_click(page, target)
        await self.wait_for_animation(page)
        return await self.detect_result(page, game_type)

    async def play_scratch_off(self, page) -> InstantWinResult:
        area = await self.find_element(page, SCRATCH_SELECTORS)
        bounds = None
        if area:
            try:
                bounds = await page.evaluate(BOUNDS_JS, area)
            except PlaywrightError as e:
                logger.debug(f"Could not measure scratch area: {e}")
        if not bounds:
            logger.warning("⚠️ Could not find scratch area")
            return InstantWinResult(played=False, game_type="scratch-off")

        await self.humanizer.drag_path(
            page, scratch_path(bounds["x"], bounds["y"], bounds["width"], bounds["height"])
        )
        await self.humanizer.wait(1500, 2500)
        return await self.detect_result(page, "scratch-off")

    async def play_match_game(self, page) -> InstantWinResult:
        tile = await self.find_element(page, TILE_SELECTORS)
        if not tile:
            logger.warning("⚠️ Could not find game tiles")
            return InstantWinResult(played=False, game_type="match-game")

        tiles = await page.query_selector_all(tile)
        for i in range(min(len(tiles), 6)):
            try:
                await self.humanizer.human_click(page, f":nth-match({tile}, {i + 1})")
            except PlaywrightError:
                break
            await self.humanizer.gaussian_delay(800, 200)

        await self.wait_for_animation(page)
        return await self.detect_result(page, "match-game")

    async def wait_for_animation(self, page):
        """Fixed wait with small mouse movements, then until animations stop (bounded)."""
        for _ in range(3):
            await self.humanizer.jiggle_mouse(page)
            await self.humanizer.sleep_ms(ANIMATION_WAIT_MS / 3)
        try:
            await self.humanizer.deadline.run(page.evaluate(ANIMATIONS_DONE_JS, ANIMATION_MAX_WAIT_MS))
        except PlaywrightError:
            await self.humanizer.wait(2500, 3500)

    async def detect_result(self, page, game_type: str) -> InstantWinResult:
        await self.humanizer.wait(1500, 2500)
        text = await self._page_text(page)
        result = classify_game_result(text, game_type)
        if result.won:
            logger.success(f"🏆 WIN detected: {result.prize}")
        elif any(p.search(text) for p in LOSE_PATTERNS):
            logger.info("Game played, did not win")
        else:
            logger.info("Could not determine win/lose result")
        return result

    async def find_element(self, page, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            try:
                if await page.is_visible(selector):
                    return selector
            except PlaywrightError:
                continue
        return None

    async def _page_text(self, page) -> str:
        try:
            return await page.evaluate(PAGE_TEXT_JS) or ""
        except PlaywrightError:
            return ""
