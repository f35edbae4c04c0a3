"""
Unit tests for form classification logic (no browser required).
"""

import re

import pytest

from contest_entry.form_logic import (
    CHECKBOX_RULES,
    CheckboxRule,
    FIELD_PATTERNS,
    FieldPattern,
    categorize_checkbox,
    compute_match_confidence,
    identify_field,
    is_last_step,
    match_autocomplete,
    resolve_option,
    should_check_checkbox,
)
from contest_entry.models import FieldOption, FormField


def field(**kwargs) -> FormField:
    return FormField(selector=kwargs.pop("selector", "#f"), **kwargs)


class TestIdentifyField:

    def test_name_attribute_only(self):
        assert identify_field(field(name="first_name")) == ("first_name", pytest.approx(0.7))

    def test_email_input_type_raises_confidence(self):
        profile_field, confidence = identify_field(field(id="email", type="email"))
        assert profile_field == "email"
        assert confidence >= 0.9

    def test_autocomplete_wins(self):
        assert identify_field(field(name="contact", autocomplete="tel")) == ("phone", 0.95)

    def test_autocomplete_given_name(self):
        assert identify_field(field(name="x1", autocomplete="given-name")) == ("first_name", 0.95)

    def test_autocomplete_country_name_is_country(self):
        country = field(selector="#country", name="country", id="country", autocomplete="country-name")
        assert identify_field(country) == ("country", 0.95)

    def test_autocomplete_tokens_are_matched_exactly(self):
        assert identify_field(field(name="login", autocomplete="username"))[0] != "full_name"
        assert identify_field(field(name="nick", autocomplete="nickname"))[0] != "full_name"
        assert match_autocomplete("cc-name") is None
        assert match_autocomplete("additional-name") is None

    def test_autocomplete_section_prefix(self):
        assert identify_field(field(name="c", autocomplete="shipping country-name")) == ("country", 0.95)
        assert identify_field(field(name="p", autocomplete="section-a billing tel")) == ("phone", 0.95)

    def test_captcha_and_community_are_not_apartment(self):
        assert identify_field(field(name="captcha_answer", type="text"))[0] != "address_line2"
        assert identify_field(field(name="community"))[0] != "address_line2"
        assert identify_field(field(name="apt", label="Apt / Unit"))[0] == "address_line2"

    def test_unmatched_field_is_unknown(self):
        assert identify_field(field(name="favorite_color")) == ("unknown", 0.0)

    def test_tel_type_fallback(self):
        assert identify_field(field(name="q7", type="tel")) == ("phone", 0.9)

    def test_last_name_from_label(self):
        profile_field, confidence = identify_field(field(name="f2", label="Last Name"))
        assert profile_field == "last_name"
        assert confidence == pytest.approx(0.6)

    def test_zip_and_state(self):
        assert identify_field(field(name="zipcode"))[0] == "zip"
        assert identify_field(field(name="state", type="select"))[0] == "state"

    def test_custom_pattern_table(self):
        table = (FieldPattern("email", (re.compile("correo", re.IGNORECASE),)),)
        assert identify_field(field(name="correo"), table) == ("email", pytest.approx(0.7))
        assert identify_field(field(name="first_name"), table)[0] == "unknown"


class TestMatchConfidence:
    pattern = next(p for p in FIELD_PATTERNS if p.profile_field == "first_name")

    def test_weights_accumulate(self):
        assert compute_match_confidence(field(name="fname"), self.pattern) == pytest.approx(0.7)
        assert compute_match_confidence(field(name="fname", id="fname"), self.pattern) == pytest.approx(0.85)

    def test_capped(self):
        full = field(name="fname", id="first_name", label="First name", placeholder="First name")
        assert compute_match_confidence(full, self.pattern) == pytest.approx(0.95)

    def test_adding_matching_attribute_never_lowers(self):
        steps = [
            {"name": "fname"},
            {"name": "fname", "id": "fname"},
            {"name": "fname", "id": "fname", "label": "First name"},
            {"name": "fname", "id": "fname", "label": "First name", "placeholder": "First"},
        ]
        scores = [compute_match_confidence(field(**s), self.pattern) for s in steps]
        assert scores == sorted(scores)


class TestCheckboxes:

    @pytest.mark.parametrize("label,category", [
        ("I agree to the Official Rules", "terms"),
        ("I am 18 or older", "age-verify"),
        ("Get bonus entries by following us", "bonus-entry"),
        ("Share my information with partners", "data-sharing"),
        ("Subscribe to our newsletter", "newsletter"),
        ("Remember me", "unknown"),
    ])
    def test_categorize(self, label, category):
        assert categorize_checkbox(label) == category

    def test_first_rule_wins(self):
        # Matches both terms and newsletter
        assert categorize_checkbox("I agree to receive emails and the terms") == "terms"

    def test_custom_rules(self):
        rules = (CheckboxRule("newsletter", (re.compile("boletin", re.IGNORECASE),)),)
        assert categorize_checkbox("Quiero el boletin", rules) == "newsletter"
        assert categorize_checkbox("I agree to the terms", rules) == "unknown"

    def test_default_rules_order(self):
        assert [rule.category for rule in CHECKBOX_RULES] == [
            "terms", "age-verify", "bonus-entry", "data-sharing", "newsletter",
        ]

    def test_policy(self):
        for category in ("terms", "age-verify", "bonus-entry"):
            assert should_check_checkbox(category, check_newsletter=False, share_data=False)
        assert should_check_checkbox("newsletter", check_newsletter=True)
        assert not should_check_checkbox("newsletter", check_newsletter=False)
        assert not should_check_checkbox("data-sharing")
        assert should_check_checkbox("data-sharing", share_data=True)
        assert not should_check_checkbox("unknown", True, True)


class TestResolveOption:
    states = [
        FieldOption(value="", text="Select a state"),
        FieldOption(value="CA", text="California"),
        FieldOption(value="NY", text="New York"),
    ]

    def test_exact_value(self):
        assert resolve_option(["CA"], self.states).value == "CA"

    def test_label_case_insensitive(self):
        assert resolve_option(["new york"], self.states).value == "NY"

    def test_substring(self):
        genders = [FieldOption(value="m", text="Male"), FieldOption(value="f", text="Female")]
        assert resolve_option(["Fem"], genders).value == "f"

    def test_no_match_returns_none(self):
        assert resolve_option(["Texas"], self.states) is None
        assert resolve_option([""], self.states) is None
        assert resolve_option(["CA"], []) is None


def test_is_last_step():
    assert is_last_step(3, 3)
    assert not is_last_step(2, 3)
    assert not is_last_step(5, None)
