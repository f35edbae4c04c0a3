"""
Human-like interaction for Playwright pages.

Mouse paths follow a multi-point Bezier curve evaluated with De Casteljau,
with a sine speed profile (slow at the ends, fast mid-path) and a little
Gaussian jitter. Typing uses per-character Gaussian delays and the odd
typo-then-backspace.
"""

import math
import random
from typing import List, Optional, Sequence, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.timing import (
    Deadline, CLICK_DELAY, SCROLL_DELAY, PAGE_LOAD_DELAY,
    gaussian, gaussian_between, sample_delay_ms,
)
from contest_entry.utils.helpers import get_adjacent_key

Point = Tuple[float, float]

TYPO_PROBABILITY = 0.05
DEFAULT_VIEWPORT = {"width": 1280, "height": 800}


def de_casteljau(points: Sequence[Point], t: float) -> Point:
    """Evaluate a Bezier curve defined by `points` at parameter t."""
    current = list(points)
    while len(current) > 1:
        current = [
            (p0[0] * (1 - t) + p1[0] * t, p0[1] * (1 - t) + p1[1] * t)
            for p0, p1 in zip(current, current[1:])
        ]
    return current[0]


def bezier_curve(start: Point, end: Point, steps: int,
                 control_points: Optional[Sequence[Point]] = None) -> List[Point]:
    """
    Points along a Bezier path from start to end (steps + 1 points).

    Without explicit control points, 2-3 are scattered around the straight
    line, each deviating by up to ~30% of the distance.
    """
    if control_points is None:
        count = 3 if random.random() > 0.5 else 2
        distance = math.hypot(end[0] - start[0], end[1] - start[1])
        deviation = distance * 0.3 / 2
        control_points = []
        for i in range(count):
            t = (i + 1) / (count + 1)
            base_x = start[0] + (end[0] - start[0]) * t
            base_y = start[1] + (end[1] - start[1]) * t
            control_points.append((base_x + gaussian(0, deviation), base_y + gaussian(0, deviation)))

    all_points = [start, *control_points, end]
    steps = max(1, steps)
    return [de_casteljau(all_points, i / steps) for i in range(steps + 1)]


def add_jitter(point: Point, max_pixels: float) -> Point:
    return (point[0] + gaussian(0, max_pixels / 2), point[1] + gaussian(0, max_pixels / 2))


def speed_factor(progress: float) -> float:
    """Bell-shaped speed: 0 at both endpoints, 1 at the midpoint."""
    return math.sin(progress * math.pi)


class Humanizer:
    """
    Mimics a real user on one page session.

    All waits go through the attempt's Deadline. With enabled=False every
    wait becomes a zero-length yield that still honours the deadline.
    """

    def __init__(self, deadline: Optional[Deadline] = None, enabled: bool = True):
        self.deadline = deadline or Deadline()
        self.enabled = enabled
        self.last_mouse: Optional[Point] = None

    # ==================== WAITS ====================

    async def sleep_ms(self, ms: float):
        await self.deadline.sleep(ms / 1000.0 if self.enabled else 0)

    async def wait(self, min_ms: float = 500, max_ms: float = 2000):
        """Wait a Gaussian duration centred between the bounds."""
        await self.sleep_ms(gaussian_between(min_ms, max_ms))

    async def gaussian_delay(self, mean_ms: float, std_ms: float):
        await self.sleep_ms(max(0.0, gaussian(mean_ms, std_ms)))

    async def click_delay(self):
        await self.sleep_ms(sample_delay_ms(CLICK_DELAY))

    async def scroll_delay(self):
        await self.sleep_ms(sample_delay_ms(SCROLL_DELAY))

    async def page_load_wait(self):
        await self.sleep_ms(sample_delay_ms(PAGE_LOAD_DELAY))

    # ==================== MOUSE ====================

    def _viewport(self, page) -> dict:
        return page.viewport_size or DEFAULT_VIEWPORT

    async def human_move_mouse(self, page, x: float, y: float, start: Optional[Point] = None):
        """Move the cursor to (x, y) along a jittered Bezier path."""
        if start is None:
            if self.last_mouse is not None:
                start = self.last_mouse
            else:
                viewport = self._viewport(page)
                start = (viewport["width"] / 2, viewport["height"] / 2)

        steps = max(15, int(gaussian(30, 10)))
        path = bezier_curve(start, (x, y), steps)

        min_delay, max_delay = 2, 18
        for i, point in enumerate(path):
            jittered = add_jitter(point, 1.5)
            await page.mouse.move(jittered[0], jittered[1])
            progress = i / (len(path) - 1) if len(path) > 1 else 0.5
            delay = max_delay - speed_factor(progress) * (max_delay - min_delay)
            await self.wait(int(delay), int(delay + 4))

        self.last_mouse = (x, y)

    async def human_click(self, page, selector: str, timeout_ms: int = 10_000):
        """Move to a random spot inside the element, pause, then click."""
        element = await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
        box = await element.bounding_box() if element else None
        if not box:
            # Offscreen or zero-size elements still get a native click
            await self.click_delay()
            await page.click(selector)
            return

        target_x = box["x"] + box["width"] * (0.2 + random.random() * 0.6)
        target_y = box["y"] + box["height"] * (0.2 + random.random() * 0.6)

        await self.human_move_mouse(page, target_x, target_y)
        await self.wait(50, 200)
        await page.mouse.click(target_x, target_y, delay=max(10, int(gaussian(60, 20))))
        self.last_mouse = (target_x, target_y)

        logger.debug(f"Human click {selector} at ({target_x:.0f}, {target_y:.0f})")

    async def jiggle_mouse(self, page):
        """Small random movements so the session never looks idle."""
        viewport = self._viewport(page)
        base_x = viewport["width"] / 2 + gaussian(0, 100)
        base_y = viewport["height"] / 2 + gaussian(0, 100)

        for _ in range(random.randint(1, 3)):
            x = max(0, min(viewport["width"], base_x + gaussian(0, 15)))
            y = max(0, min(viewport["height"], base_y + gaussian(0, 15)))
            await page.mouse.move(x, y)
            await self.wait(30, 100)

    async def drag_path(self, page, points: Sequence[Point]):
        """Press, trace the points, release. Used by scratch-off games."""
        if not points:
            return
        await page.mouse.move(points[0][0], points[0][1])
        await page.mouse.down()
        for point in points[1:]:
            x, y = add_jitter(point, 4)
            await page.mouse.move(x, y, steps=5)
            await self.wait(60, 140)
        await page.mouse.up()
        self.last_mouse = points[-1]

    # ==================== KEYBOARD ====================

    async def clear_field(self, page, selector: str):
        """Select-all then delete, falling back to fill('')."""
        try:
            await page.keyboard.press("Control+a")
            await self.wait(30, 80)
            await page.keyboard.press("Backspace")
        except PlaywrightError as e:
            logger.debug(f"Keyboard clear failed for {selector}: {e}")
            await page.fill(selector, "")

    async def human_type(self, page, selector: str, text: str):
        """
        Click the field, clear it, then type one character at a time.

        About 5% of letters are preceded by an adjacent-key typo that is
        immediately backspaced.
        """
        await self.human_click(page, selector)
        await self.wait(100, 300)
        await self.clear_field(page, selector)
        await self.wait(50, 150)

        for char in text:
            if char.isalpha() and random.random() < TYPO_PROBABILITY:
                await page.keyboard.type(get_adjacent_key(char), delay=max(20, int(gaussian(80, 25))))
                await self.wait(100, 400)
                await page.keyboard.press("Backspace")
                await self.wait(50, 150)

            await page.keyboard.type(char, delay=max(20, int(gaussian(90, 30))))

            # Occasional pause between words
            if char == " " and random.random() < 0.3:
                await self.wait(150, 600)

        logger.debug(f"Human type {selector} ({len(text)} chars)")

    # ==================== SCROLL ====================

    async def human_scroll(self, page, direction: str = "down", amount: Optional[int] = None):
        """Scroll in a Gaussian number of uneven wheel steps."""
        scroll_amount = amount if amount is not None else int(gaussian(300, 100))
        steps = max(3, int(gaussian(8, 3)))
        step_amount = scroll_amount / steps
        sign = 1 if direction == "down" else -1

        for _ in range(steps):
            await page.mouse.wheel(0, step_amount * sign * (0.8 + random.random() * 0.4))
            await self.wait(20, 80)

