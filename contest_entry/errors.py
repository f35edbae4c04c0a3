"""
Error types raised inside the entry engine.

Every error carries a short machine-readable code so results can tell
"target unreachable" apart from "too slow" or "not eligible".
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Machine-readable failure and skip codes."""
    AGE_REQUIREMENT_NOT_MET = "AGE_REQUIREMENT_NOT_MET"
    GEO_RESTRICTION = "GEO_RESTRICTION"
    GEO_STATE_EXCLUDED = "GEO_STATE_EXCLUDED"
    CONTEST_EXPIRED = "CONTEST_EXPIRED"
    LOW_LEGITIMACY = "LOW_LEGITIMACY"
    ENTRY_LIMIT_REACHED = "ENTRY_LIMIT_REACHED"
    BROWSER_ACQUISITION_FAILED = "BROWSER_ACQUISITION_FAILED"
    ENTRY_TIMEOUT = "ENTRY_TIMEOUT"
    NAVIGATION_FAILED = "NAVIGATION_FAILED"
    NO_FORM_FIELDS = "NO_FORM_FIELDS"
    CAPTCHA_FAILED = "CAPTCHA_FAILED"
    CAPTCHA_NO_SOLVER = "CAPTCHA_NO_SOLVER"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class EntryAutomationError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, code: ErrorCode):
        super().__init__(message)
        self.message = message
        self.code = code


class ComplianceError(EntryAutomationError):
    """A contest/profile pair fails a pre-flight eligibility rule."""

    def __init__(self, message: str, code: ErrorCode, rule: str, contest_id: str):
        super().__init__(message, code)
        self.rule = rule
        self.contest_id = contest_id


class EntryError(EntryAutomationError):
    """Failure while executing an entry on the live page."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EXECUTION_FAILED,
        contest_id: Optional[str] = None,
        entry_id: Optional[str] = None,
    ):
        super().__init__(message, code)
        self.contest_id = contest_id
        self.entry_id = entry_id


class EntryTimeoutError(EntryError):
    """The attempt's deadline expired."""

    def __init__(self, message: str = "Entry timed out", contest_id: Optional[str] = None,
                 entry_id: Optional[str] = None):
        super().__init__(message, ErrorCode.ENTRY_TIMEOUT, contest_id, entry_id)


class NavigationError(EntryError):
    """The contest page could not be loaded."""

    def __init__(self, reason: str, url: str):
        super().__init__(f"{reason}: {url}", ErrorCode.NAVIGATION_FAILED)
        self.reason = reason
        self.url = url


class CaptchaError(EntryAutomationError):
    """A CAPTCHA was present and could not be cleared."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CAPTCHA_FAILED,
                 captcha_type: Optional[str] = None):
        super().__init__(message, code)
        self.captcha_type = captcha_type
