"""
Testable form classification logic - no browser or Playwright required.

The pattern tables here are immutable module constants. Components take
them as constructor arguments so tests can substitute their own tables.
"""

import re
from typing import NamedTuple, Optional, Pattern, Sequence, Tuple

from contest_entry.models import FieldOption, FormField, UNKNOWN_FIELD


AUTOCOMPLETE_CONFIDENCE = 0.95
MAX_PATTERN_CONFIDENCE = 0.95
INPUT_TYPE_CONFIDENCE = 0.9


def _patterns(*sources: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


# ==================== FIELD PATTERNS ====================

class FieldPattern(NamedTuple):
    """How to recognize one profile attribute in a form control."""
    profile_field: str
    patterns: Tuple[Pattern, ...]
    autocomplete_values: Tuple[str, ...] = ()
    input_types: Tuple[str, ...] = ()  # input types that confirm this attribute


FIELD_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern(
        "first_name",
        _patterns(r"first[\s_-]?name", r"fname", r"given[\s_-]?name", r"\bfirst\b", r"\bforename\b"),
        ("given-name", "first-name"),
    ),
    FieldPattern(
        "last_name",
        _patterns(r"last[\s_-]?name", r"lname", r"sur[\s_-]?name", r"family[\s_-]?name", r"\blast\b"),
        ("family-name", "last-name", "surname"),
    ),
    FieldPattern(
        "full_name",
        _patterns(r"full[\s_-]?name", r"\bname\b", r"your[\s_-]?name", r"^name$", r"participant[\s_-]?name"),
        ("name",),
    ),
    FieldPattern(
        "email",
        _patterns(r"e[\s_-]?mail", r"email[\s_-]?address", r"\bemail\b"),
        ("email",),
        ("email",),
    ),
    FieldPattern(
        "phone",
        _patterns(r"phone", r"tel(?:ephone)?", r"mobile", r"cell", r"contact[\s_-]?number"),
        ("tel", "phone", "mobile"),
        ("tel",),
    ),
    FieldPattern(
        "address_line1",
        _patterns(r"address[\s_-]?(?:line[\s_-]?)?1?$", r"street[\s_-]?address",
                  r"mailing[\s_-]?address", r"\baddress\b", r"addr1"),
        ("address-line1", "street-address"),
    ),
    FieldPattern(
        "address_line2",
        _patterns(r"address[\s_-]?(?:line[\s_-]?)?2", r"\bapt\b", r"apartment", r"\bsuite\b", r"\bunit\b", r"addr2"),
        ("address-line2",),
    ),
    FieldPattern(
        "city",
        _patterns(r"\bcity\b", r"\btown\b", r"municipality"),
        ("address-level2",),
    ),
    FieldPattern(
        "state",
        _patterns(r"\bstate\b", r"\bprovince\b", r"\bregion\b"),
        ("address-level1",),
    ),
    FieldPattern(
        "zip",
        _patterns(r"zip[\s_-]?(?:code)?", r"postal[\s_-]?code", r"\bzip\b", r"\bpostal\b", r"postcode"),
        ("postal-code", "zip-code"),
    ),
    FieldPattern(
        "country",
        _patterns(r"\bcountry\b", r"\bnation\b"),
        ("country", "country-name"),
    ),
    FieldPattern(
        "date_of_birth",
        _patterns(r"date[\s_-]?of[\s_-]?birth", r"\bdob\b", r"birth[\s_-]?date", r"birthday", r"\bbirth\b"),
        ("bday",),
    ),
    FieldPattern(
        "gender",
        _patterns(r"\bgender\b", r"\bsex\b"),
        ("sex",),
    ),
    FieldPattern(
        "age",
        _patterns(r"\bage\b", r"how[\s_-]?old"),
    ),
)

# Unmatched controls of these input types still map to a sensible default
INPUT_TYPE_FALLBACKS = {
    "email": ("email", INPUT_TYPE_CONFIDENCE),
    "tel": ("phone", INPUT_TYPE_CONFIDENCE),
    "date": ("date_of_birth", 0.7),
}


def _any_match(patterns: Sequence[Pattern], text: str) -> bool:
    return bool(text) and any(p.search(text) for p in patterns)


def compute_match_confidence(field: FormField, pattern: FieldPattern) -> float:
    """
    Score how strongly a field matches a pattern.

    Starts at 0.5 and adds a fixed weight for each attribute that matches
    (name 0.2, id 0.15, label 0.1, placeholder 0.05), capped at 0.95.
    Adding a matching attribute never lowers the score.
    """
    confidence = 0.5
    if _any_match(pattern.patterns, field.name):
        confidence += 0.2
    if _any_match(pattern.patterns, field.id):
        confidence += 0.15
    if _any_match(pattern.patterns, field.label):
        confidence += 0.1
    if _any_match(pattern.patterns, field.placeholder):
        confidence += 0.05
    return min(MAX_PATTERN_CONFIDENCE, confidence)


def match_autocomplete(autocomplete: str,
                       patterns: Sequence[FieldPattern] = FIELD_PATTERNS) -> Optional[str]:
    """
    Resolve an autocomplete attribute to a profile field.

    The whole value is compared first, then each whitespace-separated token,
    so "shipping country-name" resolves through "country-name". Tokens are
    compared exactly; "username" never matches the "name" hint.
    """
    value = autocomplete.strip().lower()
    if not value:
        return None

    for pattern in patterns:
        if value in pattern.autocomplete_values:
            return pattern.profile_field

    tokens = value.split()
    for token in reversed(tokens):
        for pattern in patterns:
            if token in pattern.autocomplete_values:
                return pattern.profile_field
    return None


def identify_field(field: FormField,
                   patterns: Sequence[FieldPattern] = FIELD_PATTERNS) -> Tuple[str, float]:
    """
    Determine which profile attribute a form control represents.

    Args:
        field: Detected form control
        patterns: Pattern table, in priority order

    Returns:
        (profile_field, confidence); profile_field is "unknown" when nothing matches
    """
    search_text = " ".join(
        part for part in (field.name, field.id, field.placeholder, field.label, field.autocomplete) if part
    )
    field_type = field.type.lower()

    # Autocomplete hints are the most reliable signal
    hinted = match_autocomplete(field.autocomplete, patterns)
    if hinted:
        return hinted, AUTOCOMPLETE_CONFIDENCE

    best_field, best_confidence = UNKNOWN_FIELD, 0.0

    for pattern in patterns:
        if not _any_match(pattern.patterns, search_text):
            continue

        confidence = compute_match_confidence(field, pattern)
        if field_type in pattern.input_types:
            confidence = max(confidence, INPUT_TYPE_CONFIDENCE)
        if confidence > best_confidence:
            best_field, best_confidence = pattern.profile_field, confidence

    if best_field == UNKNOWN_FIELD and field_type in INPUT_TYPE_FALLBACKS:
        return INPUT_TYPE_FALLBACKS[field_type]

    return best_field, best_confidence


# ==================== CHECKBOX RULES ====================

class CheckboxRule(NamedTuple):
    category: str
    patterns: Tuple[Pattern, ...]


# Evaluated in order; the first matching category wins
CHECKBOX_RULES: Tuple[CheckboxRule, ...] = (
    CheckboxRule("terms", _patterns(
        r"\bterms\b", r"\brules\b", r"\bagree\b", r"\baccept\b", r"\bconditions\b",
        r"\bofficial rules\b", r"\bterms of service\b", r"\bterms & conditions\b",
        r"\bterms and conditions\b", r"\bi have read\b", r"\bi acknowledge\b",
    )),
    CheckboxRule("age-verify", _patterns(
        r"\b18\+", r"\b18 or older\b", r"\b21\+", r"\b21 or older\b",
        r"\bage\b.*\brequirement\b", r"\bof legal age\b", r"\bconfirm.*\bage\b",
        r"\bverify.*\bage\b", r"\b13 or older\b", r"\b13\+",
    )),
    CheckboxRule("bonus-entry", _patterns(
        r"\bbonus\b.*\bentr(?:y|ies)\b", r"\bextra\b.*\bentr(?:y|ies)\b",
        r"\badditional\b.*\bentr(?:y|ies)\b", r"\bdouble\b.*\bentr(?:y|ies)\b", r"\bbonus\b",
    )),
    CheckboxRule("data-sharing", _patterns(
        r"\bshare.*data\b", r"\bshare.*information\b", r"\bthird.?part(?:y|ies)\b",
        r"\bpartners?\b", r"\baffiliate\b", r"\bshare.*with\b", r"\bsponsor.*contact\b",
    )),
    CheckboxRule("newsletter", _patterns(
        r"\bnewsletter\b", r"\bsubscribe\b", r"\bemail.*updates?\b", r"\bsign.*up.*email\b",
        r"\breceive.*emails?\b", r"\bopt.*in.*email\b", r"\bmarketing.*emails?\b",
        r"\bpromotional\b", r"\bspecial offers\b",
    )),
)


def categorize_checkbox(label_text: str, rules: Sequence[CheckboxRule] = CHECKBOX_RULES) -> str:
    """Return the first rule category whose patterns match the label."""
    for rule in rules:
        if _any_match(rule.patterns, label_text):
            return rule.category
    return UNKNOWN_FIELD


def should_check_checkbox(category: str, check_newsletter: bool = True,
                          share_data: bool = False) -> bool:
    """
    Fixed checking policy.

    Terms, age verification and bonus entries are always checked. Newsletter
    and data-sharing boxes follow the caller's flags. Unknown boxes are left alone.
    """
    if category in ("terms", "age-verify", "bonus-entry"):
        return True
    if category == "newsletter":
        return check_newsletter
    if category == "data-sharing":
        return share_data
    return False


# ==================== OPTIONS ====================

def resolve_option(candidates: Sequence[str], options: Sequence[FieldOption]) -> Optional[FieldOption]:
    """
    Pick the declared option matching any of the candidate values.

    Tries an exact value match, then a case-insensitive label match, then a
    substring match in either direction. Returns None when nothing fits so
    the field is left untouched instead of forced.
    """
    wanted = [c.strip() for c in candidates if c and c.strip()]
    if not wanted or not options:
        return None

    for candidate in wanted:
        for option in options:
            if option.value == candidate:
                return option

    for candidate in wanted:
        lowered = candidate.lower()
        for option in options:
            if option.text.strip().lower() == lowered or option.value.lower() == lowered:
                return option

    for candidate in wanted:
        lowered = candidate.lower()
        for option in options:
            text = option.text.strip().lower()
            if text and (lowered in text or text in lowered):
                return option

    return None


# ==================== SELECTOR LISTS ====================

SUBMIT_SELECTORS: Tuple[str, ...] = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:not([type])',
    'button.submit',
    'button.btn-submit',
    'input[type="button"][value*="submit" i]',
    'input[type="button"][value*="enter" i]',
    'button[id*="submit" i]',
    'button[class*="submit" i]',
    'a.submit-button',
    'a.btn-submit',
)

SUBMIT_FALLBACK_SELECTOR = 'button[type="submit"], input[type="submit"], button:not([type])'

SUBMIT_KEYWORDS: Tuple[str, ...] = (
    "submit", "enter", "sign up", "register", "apply", "join", "go", "continue",
)

CAPTCHA_SELECTORS: Tuple[str, ...] = (
    'iframe[src*="recaptcha"]',
    'iframe[src*="hcaptcha"]',
    '.g-recaptcha',
    '.h-captcha',
    '[data-sitekey]',
    '#captcha',
    '.captcha',
    '.cf-turnstile',
)

NEXT_BUTTON_SELECTORS: Tuple[str, ...] = (
    'button:has-text("Next")',
    'button:has-text("Continue")',
    'input[type="button"][value*="Next" i]',
    'input[type="button"][value*="Continue" i]',
    'a:has-text("Next")',
    'a:has-text("Continue")',
    'button.next',
    'button.continue',
    'button.btn-next',
    '.next-step',
    '.next-button',
    '.continue-button',
    'button[class*="next"]',
    'button[class*="continue"]',
    'input[type="submit"][value*="Next" i]',
    'input[type="submit"][value*="Continue" i]',
)

NEXT_KEYWORDS: Tuple[str, ...] = ("next", "continue", "proceed", "next step", "go to step")


def is_last_step(step_info_current: int, step_info_total: Optional[int]) -> bool:
    return step_info_total is not None and step_info_current >= step_info_total

