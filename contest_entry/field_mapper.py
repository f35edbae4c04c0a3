"""
Field mapper - turns analyzed fields plus a profile into fill instructions.

Handles the formatting quirks of real forms: phone masks, ZIP vs ZIP+4,
date-of-birth layouts, and state/country name-vs-code option lists.
"""

import re
from datetime import date
from typing import List, Optional, Sequence

from loguru import logger

from contest_entry.compliance import calculate_age
from contest_entry.form_logic import resolve_option
from contest_entry.models import AnalyzedField, FieldMapping, Profile, UNKNOWN_FIELD


STATE_ABBREVIATIONS = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN",
    "mississippi": "MS", "missouri": "MO", "montana": "MT", "nebraska": "NE",
    "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ",
    "new mexico": "NM", "new york": "NY", "north carolina": "NC",
    "north dakota": "ND", "ohio": "OH", "oklahoma": "OK", "oregon": "OR",
    "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virginia": "VA", "washington": "WA",
    "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
    "district of columbia": "DC",
}

ABBREVIATION_TO_STATE = {abbr: name for name, abbr in STATE_ABBREVIATIONS.items()}

COUNTRY_ALIASES = (
    ("us", "usa", "united states", "united states of america", "u.s.", "u.s.a."),
    ("ca", "can", "canada"),
    ("uk", "gb", "united kingdom", "great britain"),
)

GENDER_ALIASES = {
    "male": ("male", "m", "man"),
    "female": ("female", "f", "woman"),
}

SELECT_TYPES = ("select", "select-one", "select-multiple")


def format_phone(phone: str, placeholder: str = "", hint: str = "") -> str:
    """Format a phone number to match the field's placeholder or hint text."""
    digits = re.sub(r"\D", "", phone)[-10:]
    if len(digits) != 10:
        return phone

    hint = hint.lower()
    if "no dashes" in hint or "no spaces" in hint or "digits only" in hint:
        return digits
    if "(" in placeholder:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if "." in placeholder:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:]}"
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"


def format_zip(zip_code: str, hint: str = "") -> str:
    digits = re.sub(r"\D", "", zip_code)
    hint = hint.lower()
    if ("zip+4" in hint or "zip4" in hint) and len(digits) >= 9:
        return f"{digits[:5]}-{digits[5:9]}"
    # Non-US postal codes carry letters; keep them as entered
    if not digits or re.search(r"[A-Za-z]", zip_code):
        return zip_code.strip()
    return digits[:5]


def format_date_of_birth(dob: date, field_type: str = "text", placeholder: str = "") -> str:
    """ISO for native date inputs, otherwise follow the placeholder (default MM/DD/YYYY)."""
    placeholder = placeholder.lower()
    if field_type == "date" or "yyyy-mm-dd" in placeholder or "iso" in placeholder:
        return dob.strftime("%Y-%m-%d")
    if "dd/mm/yyyy" in placeholder:
        return dob.strftime("%d/%m/%Y")
    return dob.strftime("%m/%d/%Y")


def state_candidates(state: str) -> List[str]:
    """Every spelling a form might use for the profile's state."""
    cleaned = state.strip()
    abbreviation = STATE_ABBREVIATIONS.get(cleaned.lower(), cleaned.upper())
    full_name = ABBREVIATION_TO_STATE.get(abbreviation, cleaned)
    return [abbreviation, full_name.title(), cleaned]


def country_candidates(country: str) -> List[str]:
    lowered = country.strip().lower()
    for group in COUNTRY_ALIASES:
        if lowered in group:
            return list(group)
    return [country]


class FieldMapper:
    """Maps AnalyzedFields to FieldMappings, skipping anything uncertain."""

    def __init__(self, min_confidence: float = 0.3):
        self.min_confidence = min_confidence

    def map_fields(self, fields: Sequence[AnalyzedField], profile: Profile) -> List[FieldMapping]:
        """
        Build ordered fill instructions for the given fields.

        Fields that are unknown, below the confidence threshold, empty in
        the profile, or whose options don't contain the profile value are
        skipped rather than filled with a guess.
        """
        mappings = []
        for field in fields:
            if field.type == "checkbox":
                # Consent boxes are owned by the checkbox handler
                continue
            if field.mapped_profile_field == UNKNOWN_FIELD or field.confidence < self.min_confidence:
                logger.debug(f"   Skipping {field.selector} ({field.mapped_profile_field}, {field.confidence:.2f})")
                continue

            mapping = self.create_mapping(field, profile)
            if mapping:
                mappings.append(mapping)

        logger.debug(f"Mapped {len(mappings)}/{len(fields)} fields")
        return mappings

    def create_mapping(self, field: AnalyzedField, profile: Profile) -> Optional[FieldMapping]:
        field_type = field.type.lower()

        if field.options:
            option = resolve_option(self._candidates(field, profile), field.options)
            if option is None:
                logger.debug(f"   No option in {field.selector} matches profile {field.mapped_profile_field}")
                return None
            if field_type == "radio":
                return FieldMapping(
                    selector=f'{field.selector}[value="{option.value}"]',
                    value=option.value, type=field_type, method="click",
                    profile_field=field.mapped_profile_field,
                )
            return FieldMapping(
                selector=field.selector, value=option.value, type=field_type,
                method="select", profile_field=field.mapped_profile_field,
            )

        value = self.profile_value(field, profile)
        if not value:
            logger.debug(f"   Profile has no value for {field.mapped_profile_field}")
            return None

        method = "select" if field_type in SELECT_TYPES else "type"
        return FieldMapping(
            selector=field.selector, value=value, type=field_type,
            method=method, profile_field=field.mapped_profile_field,
        )

    def profile_value(self, field: AnalyzedField, profile: Profile) -> str:
        """The profile's value for a free-text field, formatted for that field."""
        hint = f"{field.placeholder} {field.label} {field.name}"
        address = profile.address
        key = field.mapped_profile_field

        if key == "first_name":
            return profile.first_name
        if key == "last_name":
            return profile.last_name
        if key == "full_name":
            return profile.full_name
        if key == "email":
            return profile.email
        if key == "phone":
            return format_phone(profile.phone, field.placeholder, hint) if profile.phone else ""
        if key == "address_line1":
            return address.line1
        if key == "address_line2":
            return address.line2
        if key == "city":
            return address.city
        if key == "state":
            return state_candidates(address.state)[0] if address.state else ""
        if key == "zip":
            return format_zip(address.zip, hint) if address.zip else ""
        if key == "country":
            return address.country
        if key == "date_of_birth":
            if not profile.date_of_birth:
                return ""
            return format_date_of_birth(profile.date_of_birth, field.type.lower(), field.placeholder)
        if key == "gender":
            return profile.gender
        if key == "age":
            return str(calculate_age(profile.date_of_birth)) if profile.date_of_birth else ""
        return ""

    def _candidates(self, field: AnalyzedField, profile: Profile) -> List[str]:
        """Values to look for among a select's or radio group's options."""
        key = field.mapped_profile_field
        if key == "state":
            return state_candidates(profile.address.state) if profile.address.state else []
        if key == "country":
            return country_candidates(profile.address.country) if profile.address.country else []
        if key == "gender":
            gender = profile.gender.strip().lower()
            return list(GENDER_ALIASES.get(gender, (gender,))) if gender else []
        value = self.profile_value(field, profile)
        return [value] if value else []
