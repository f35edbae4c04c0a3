"""
Configuration models for the contest entry engine.
Uses Pydantic for validation and type safety.
"""

import json
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, field_validator

from contest_entry.utils.helpers import get_app_data_directory


# Contests scored below this by the discovery pipeline are never entered.
MIN_LEGITIMACY_SCORE = 0.35


def _clamp(value, low, high):
    if value < low:
        return low
    if value > high:
        return high
    return value


class EntryOptions(BaseModel):
    """Per-call options for EntryOrchestrator.enter()."""
    timeout_ms: Optional[int] = Field(default=None, alias="timeoutMs")  # None = Settings.entry_timeout_ms
    take_screenshots: bool = Field(default=True, alias="takeScreenshots")
    check_newsletter_for_bonus: bool = Field(default=True, alias="checkNewsletterForBonus")
    share_data_with_partners: bool = Field(default=False, alias="shareDataWithPartners")
    proxy_id: Optional[str] = Field(default=None, alias="proxyId")
    max_retries: int = Field(default=3, alias="maxRetries")  # Informational, retries belong to the scheduler

    @field_validator('timeout_ms')
    @classmethod
    def validate_timeout_ms(cls, v: Optional[int]) -> Optional[int]:
        """A non-positive timeout means 'use the default'."""
        if v is not None and v <= 0:
            return None
        return v

    def resolve(self, settings: "Settings") -> "EntryOptions":
        """Return a copy with every default filled in from settings."""
        if self.timeout_ms is not None:
            return self
        return self.model_copy(update={"timeout_ms": settings.entry_timeout_ms})

    class Config:
        populate_by_name = True


class APIKeys(BaseModel):
    """API keys configuration."""
    captcha: str = ""

    class Config:
        populate_by_name = True


class Settings(BaseModel):
    """Engine limits and runtime settings."""
    entry_timeout_ms: int = Field(default=120_000, alias="entryTimeoutMs")  # range 5s-10min
    page_load_timeout_ms: int = Field(default=30_000, alias="pageLoadTimeoutMs")
    screenshot_timeout_ms: int = Field(default=5_000, alias="screenshotTimeoutMs")
    navigation_settle_ms: int = Field(default=2_000, alias="navigationSettleMs")
    step_navigation_wait_ms: int = Field(default=5_000, alias="stepNavigationWaitMs")
    submit_navigation_wait_ms: int = Field(default=15_000, alias="submitNavigationWaitMs")
    max_steps: int = Field(default=10, alias="maxSteps")  # range 1-25
    max_redirects: int = Field(default=5, alias="maxRedirects")  # range 0-20
    min_field_confidence: float = Field(default=0.3, alias="minFieldConfidence")
    humanize: bool = True  # False collapses all humanized waits (local runs, tests)
    headless: bool = True
    debug: bool = False
    detailed_logs: bool = Field(default=False, alias="detailedLogs")
    database_url: str = Field(default="", alias="databaseUrl")
    screenshots_dir: str = Field(default="", alias="screenshotsDir")

    @field_validator('entry_timeout_ms')
    @classmethod
    def validate_entry_timeout_ms(cls, v: int) -> int:
        """Validate entry_timeout_ms is within valid range (5s-10min)."""
        return _clamp(v, 5_000, 600_000)

    @field_validator('page_load_timeout_ms', 'submit_navigation_wait_ms')
    @classmethod
    def validate_page_timeouts(cls, v: int) -> int:
        """Validate page-level timeouts are within 1s-2min."""
        return _clamp(v, 1_000, 120_000)

    @field_validator('screenshot_timeout_ms')
    @classmethod
    def validate_screenshot_timeout_ms(cls, v: int) -> int:
        return _clamp(v, 500, 30_000)

    @field_validator('navigation_settle_ms', 'step_navigation_wait_ms')
    @classmethod
    def validate_settle_windows(cls, v: int) -> int:
        """Settle windows may be zero but never longer than 30s."""
        return _clamp(v, 0, 30_000)

    @field_validator('max_steps')
    @classmethod
    def validate_max_steps(cls, v: int) -> int:
        """Validate max_steps is within valid range (1-25)."""
        return _clamp(v, 1, 25)

    @field_validator('max_redirects')
    @classmethod
    def validate_max_redirects(cls, v: int) -> int:
        """Validate max_redirects is within valid range (0-20)."""
        return _clamp(v, 0, 20)

    @field_validator('min_field_confidence')
    @classmethod
    def validate_min_field_confidence(cls, v: float) -> float:
        return _clamp(v, 0.0, 1.0)

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{get_app_data_directory() / 'entries.db'}"

    def resolved_screenshots_dir(self) -> str:
        if self.screenshots_dir:
            return self.screenshots_dir
        return str(get_app_data_directory() / "screenshots")

    class Config:
        populate_by_name = True


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    settings: Settings = Field(default_factory=Settings)
    api_keys: APIKeys = Field(default_factory=APIKeys, alias="apiKeys")
    proxies: Dict[str, str] = Field(default_factory=dict)  # proxy id -> server URL

    class Config:
        populate_by_name = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_file(cls, path: str) -> "EngineConfig":
        """Load configuration from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str):
        """Save configuration to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
