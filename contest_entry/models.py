"""
Data models for the entry engine.
Uses Pydantic for validation; camelCase aliases match the JSON produced
by the profile and contest services.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from contest_entry.utils.helpers import utc_now


UNKNOWN_FIELD = "unknown"


class EntryStatus(str, Enum):
    """Terminal status of an entry attempt."""
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WON = "won"
    LOST = "lost"
    EXPIRED = "expired"
    DUPLICATE = "duplicate"


SUCCESS_STATUSES = (EntryStatus.CONFIRMED, EntryStatus.SUBMITTED)


class EntryFrequency(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    UNLIMITED = "unlimited"


# ==================== PROFILE ====================

def parse_date_of_birth(value: Any) -> Optional[date]:
    """Accept YYYY-MM-DD or MM/DD/YYYY strings, dates, or datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    iso = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", text)
    if iso:
        return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
    us = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{4})$", text)
    if us:
        return date(int(us.group(3)), int(us.group(1)), int(us.group(2)))
    raise ValueError(f"Unrecognized date of birth: {text}")


class Address(BaseModel):
    """Postal address."""
    line1: str = Field(default="", alias="addressLine1")
    line2: str = Field(default="", alias="addressLine2")
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"

    class Config:
        populate_by_name = True
        frozen = True


class SocialAccounts(BaseModel):
    """Social-account handles."""
    twitter: str = ""
    instagram: str = ""
    facebook: str = ""
    tiktok: str = ""
    youtube: str = ""

    class Config:
        populate_by_name = True
        frozen = True


class Profile(BaseModel):
    """Identity data used to fill entry forms. Read-only for the engine."""
    id: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""
    email_aliases: List[str] = Field(default_factory=list, alias="emailAliases")
    phone: str = ""
    address: Address = Field(default_factory=Address)
    date_of_birth: Optional[date] = Field(default=None, alias="dateOfBirth")
    gender: str = ""
    social_accounts: SocialAccounts = Field(default_factory=SocialAccounts, alias="socialAccounts")

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def validate_date_of_birth(cls, v: Any) -> Optional[date]:
        return parse_date_of_birth(v)

    @field_validator("phone", "gender", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return v or ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def state(self) -> str:
        return self.address.state

    @property
    def country(self) -> str:
        return self.address.country

    class Config:
        populate_by_name = True
        frozen = True


# ==================== CONTEST ====================

class Contest(BaseModel):
    """Entry-ready description of a contest. Read-only for the engine."""
    id: str
    url: str
    title: str = ""
    sponsor: str = ""
    type: str = "sweepstakes"
    entry_method: str = Field(default="form", alias="entryMethod")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    entry_frequency: EntryFrequency = Field(default=EntryFrequency.ONCE, alias="entryFrequency")
    age_requirement: Optional[int] = Field(default=None, alias="ageRequirement")
    geo_restrictions: List[str] = Field(default_factory=list, alias="geoRestrictions")
    legitimacy_score: float = Field(default=1.0, alias="legitimacyScore")
    has_captcha: bool = Field(default=False, alias="hasCaptcha")
    requires_email_confirm: bool = Field(default=False, alias="requiresEmailConfirm")
    requires_sms: bool = Field(default=False, alias="requiresSms")
    social_requirements: List[str] = Field(default_factory=list, alias="socialRequirements")

    @property
    def label(self) -> str:
        return self.title or self.url

    class Config:
        populate_by_name = True
        frozen = True


# ==================== FORM ANALYSIS ====================

class FieldOption(BaseModel):
    """One declared option of a select or radio group."""
    value: str
    text: str = ""


class FormField(BaseModel):
    """A raw detected form control."""
    selector: str
    type: str = "text"
    name: str = ""
    id: str = ""
    label: str = ""
    placeholder: str = ""
    autocomplete: str = ""
    required: bool = False
    options: List[FieldOption] = Field(default_factory=list)

    @field_validator("name", "id", "label", "placeholder", "autocomplete", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return v or ""


class AnalyzedField(FormField):
    """A detected control classified against a profile attribute."""
    mapped_profile_field: str = UNKNOWN_FIELD
    confidence: float = 0.0


class FieldMapping(BaseModel):
    """A resolved fill instruction."""
    selector: str
    value: str
    type: str = "text"
    method: Literal["type", "select", "click", "check"] = "type"
    profile_field: str = UNKNOWN_FIELD


class FormAnalysis(BaseModel):
    """Everything the analyzer learned about the current page."""
    fields: List[AnalyzedField] = Field(default_factory=list)
    submit_button: str = ""
    form_selector: str = "form"
    is_multi_step: bool = False
    has_terms_checkbox: bool = False
    has_captcha: bool = False
    has_file_upload: bool = False


class StepInfo(BaseModel):
    """Progress metadata for one multi-step iteration."""
    current_step: int = 1
    total_steps: Optional[int] = None
    has_next: bool = False
    next_button_selector: Optional[str] = None


class CheckboxClassification(BaseModel):
    selector: str
    category: Literal["terms", "age-verify", "newsletter", "data-sharing", "bonus-entry", "unknown"]
    label_text: str = ""
    should_check: bool = False


class MultiStepOutcome(BaseModel):
    """Summary of a multi-step run."""
    steps: int = 0
    redirects: int = 0
    stop_reason: Literal["last-step", "no-next-button", "max-steps", "max-redirects"] = "last-step"
    fields_filled: List[str] = Field(default_factory=list)
    iframe_form_detected: bool = False
    modal_detected: bool = False


class ConfirmationResult(BaseModel):
    outcome: Literal["confirmed", "uncertain", "already-entered", "failed"]
    message: str = ""
    confirmation_number: Optional[str] = None
    screenshot_path: Optional[str] = None

    @property
    def status(self) -> EntryStatus:
        return {
            "confirmed": EntryStatus.CONFIRMED,
            "uncertain": EntryStatus.SUBMITTED,
            "already-entered": EntryStatus.DUPLICATE,
            "failed": EntryStatus.FAILED,
        }[self.outcome]


class InstantWinResult(BaseModel):
    played: bool = False
    won: bool = False
    prize: Optional[str] = None
    game_type: str = "unknown"


# ==================== RESULTS ====================

class EntryResult(BaseModel):
    """Terminal record of one entry attempt."""
    entry_id: str = Field(alias="entryId")
    contest_id: str = Field(alias="contestId")
    profile_id: str = Field(alias="profileId")
    status: EntryStatus
    message: str = ""
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    confirmation_number: Optional[str] = Field(default=None, alias="confirmationNumber")
    screenshot_path: Optional[str] = Field(default=None, alias="screenshotPath")
    strategy: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    duration_ms: int = Field(default=0, alias="durationMs")
    errors: List[str] = Field(default_factory=list)
    instant_win_result: Optional[InstantWinResult] = Field(default=None, alias="instantWinResult")

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    class Config:
        populate_by_name = True


class EntryLimitRecord(BaseModel):
    """Frequency-limit state for one (contest, profile) pair."""
    contest_id: str
    profile_id: str
    entry_count: int = 0
    last_entry_at: Optional[datetime] = None
    next_eligible_at: Optional[datetime] = None
