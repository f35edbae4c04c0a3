"""
Post-submission result detection.

Reads the page after a submit and decides whether the entry went
through, extracting a confirmation number when the page shows one.
"""

import re
from typing import Optional, Pattern, Sequence, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from contest_entry.browser import take_screenshot
from contest_entry.humanizer import Humanizer
from contest_entry.models import ConfirmationResult

RESULT_DETECTION_TIMEOUT_MS = 10_000

PAGE_TEXT_JS = "() => document.body ? (document.body.innerText || document.body.textContent || '') : ''"


def _patterns(*sources: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


# Checked first: these are failures too, but mean the entry already exists
ALREADY_ENTERED_PATTERNS = _patterns(
    r"already\s*entered",
    r"you(?:'ve|\s*have)\s*already",
    r"duplicate\s*entry",
    r"maximum\s*entries?\s*reached",
    r"limit\s*(?:reached|exceeded)",
)

SUCCESS_PATTERNS = _patterns(
    r"thank\s*you",
    r"entry\s*received",
    r"entry\s*confirmed",
    r"successfully\s*(?:entered|submitted|registered)",
    r"you(?:'re|\s*are)\s*(?:now\s*)?entered",
    r"good\s*luck",
    r"entry\s*complete",
    r"confirmation",
    r"you(?:'ve|\s*have)\s*been\s*entered",
    r"we(?:'ve|\s*have)\s*received\s*your",
    r"submission\s*complete",
    r"registration\s*complete",
    r"entry\s*#\s*\d+",
)

FAILURE_PATTERNS = _patterns(
    r"\berror\b",
    r"something\s*went\s*wrong",
    r"not\s*eligible",
    r"ineligible",
    r"expired",
    r"this\s*(?:contest|sweepstakes)\s*(?:has\s*)?ended",
    r"submission\s*failed",
    r"unable\s*to\s*(?:process|submit)",
    r"please\s*try\s*again",
    r"invalid\s*(?:entry|submission)",
)

CONFIRMATION_NUMBER_PATTERNS = (
    re.compile(r"(?:confirmation|entry|reference|receipt)\s*(?:#|number|no\.?|code)[:\s]*([A-Z0-9-]{4,20})", re.I),
    re.compile(r"(?:entry|confirmation)\s*#\s*(\d+)", re.I),
    re.compile(r"(?:your|entry)\s*(?:id|number)[:\s]*([A-Z0-9-]{4,20})", re.I),
    re.compile(r"(?:ref|transaction)\s*(?:id|number|#|:)[:\s]*([A-Z0-9-]{4,20})", re.I),
)


def _first_match(patterns: Sequence[Pattern], text: str) -> Optional[re.Match]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match
    return None


def extract_message(text: str, match: re.Match) -> str:
    """A short human-readable snippet around a matched phrase."""
    start = max(0, match.start() - 20)
    end = min(len(text), match.end() + 80)
    message = text[start:end].strip()

    sentence_end = message.find(".", match.end() - start)
    if 0 < sentence_end < 120:
        message = message[:sentence_end + 1]

    # Drop a leading partial word
    if start > 0:
        space = message.find(" ")
        if 0 < space < 15:
            message = message[space + 1:]

    return message.strip()


def extract_confirmation_number(text: str) -> Optional[str]:
    for pattern in CONFIRMATION_NUMBER_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1).strip()
    return None


def classify_confirmation_text(text: str) -> ConfirmationResult:
    """
    Classify post-submit page text.

    Priority: already-entered, success, failure, then uncertain. An
    uncertain page is treated as a likely submission, not a failure.
    """
    text = re.sub(r"\s+", " ", text or "").strip()

    match = _first_match(ALREADY_ENTERED_PATTERNS, text)
    if match:
        return ConfirmationResult(
            outcome="already-entered",
            message=extract_message(text, match) or "Already entered this contest",
        )

    match = _first_match(SUCCESS_PATTERNS, text)
    if match:
        return ConfirmationResult(
            outcome="confirmed",
            message=extract_message(text, match) or "Entry submitted successfully",
            confirmation_number=extract_confirmation_number(text),
        )

    match = _first_match(FAILURE_PATTERNS, text)
    if match:
        return ConfirmationResult(
            outcome="failed",
            message=extract_message(text, match) or "Entry submission failed",
        )

    return ConfirmationResult(outcome="uncertain", message="Entry submitted (confirmation status uncertain)")


class ConfirmationHandler:
    """Waits for the result page, screenshots it and classifies it."""

    def __init__(self, humanizer: Humanizer, screenshots_dir: str, take_screenshots: bool = True):
        self.humanizer = humanizer
        self.screenshots_dir = screenshots_dir
        self.take_screenshots = take_screenshots

    async def handle(self, page, entry_id: str) -> ConfirmationResult:
        await self.wait_for_result_page(page)

        try:
            text = await page.evaluate(PAGE_TEXT_JS) or ""
        except PlaywrightError as e:
            logger.debug(f"Could not read result page text: {e}")
            text = ""

        screenshot_path = None
        if self.take_screenshots:
            screenshot_path = await take_screenshot(page, self.screenshots_dir, f"entry_{entry_id}")

        result = classify_confirmation_text(text)
        result.screenshot_path = screenshot_path

        if result.outcome == "confirmed":
            number = f" #{result.confirmation_number}" if result.confirmation_number else ""
            logger.info(f"🎉 Entry confirmed{number}: {result.message[:80]}")
        elif result.outcome == "uncertain":
            logger.info("🤔 Could not determine result, assuming submitted")
        else:
            logger.warning(f"⚠️ Result page says {result.outcome}: {result.message[:80]}")
        return result

    async def wait_for_result_page(self, page):
        try:
            await page.wait_for_load_state("networkidle", timeout=RESULT_DETECTION_TIMEOUT_MS)
        except PlaywrightError:
            logger.debug("Network never went idle, reading the page anyway")
        await self.humanizer.wait(1500, 2500)
