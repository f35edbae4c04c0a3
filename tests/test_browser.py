"""
Navigation error classification and screenshots.
"""

import asyncio

import pytest

from contest_entry.browser import classify_navigation_error, navigate, take_screenshot
from contest_entry.errors import ErrorCode, NavigationError
from tests.fakes import FakePage


@pytest.mark.parametrize("raw,reason", [
    ("net::ERR_NAME_NOT_RESOLVED at https://nope.test", "Domain not found"),
    ("net::ERR_CERT_AUTHORITY_INVALID", "SSL certificate error"),
    ("Timeout 30000ms exceeded.", "Connection timed out"),
    ("net::ERR_CONNECTION_REFUSED", "Connection refused"),
])
def test_classify_navigation_error(raw, reason):
    assert classify_navigation_error(raw) == reason


def test_unclassified_error_keeps_detail():
    assert classify_navigation_error("weird failure").startswith("Navigation failed: weird failure")


def test_navigate_success():
    page = FakePage()
    response = asyncio.run(navigate(page, "https://example.com/contest"))
    assert response.ok
    assert page.url == "https://example.com/contest"


def test_navigate_failure_raises_navigation_error():
    page = FakePage(goto_error="net::ERR_NAME_NOT_RESOLVED")
    with pytest.raises(NavigationError) as info:
        asyncio.run(navigate(page, "https://nope.test"))
    assert info.value.code == ErrorCode.NAVIGATION_FAILED
    assert info.value.reason == "Domain not found"
    assert info.value.url == "https://nope.test"


def test_take_screenshot(tmp_path):
    path = asyncio.run(take_screenshot(FakePage(), str(tmp_path / "shots"), "entry_x"))
    assert path.endswith(".png")
    assert (tmp_path / "shots").is_dir()
