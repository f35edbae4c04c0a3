"""
Post-submit confirmation classification and instant-win game handling.
"""

import asyncio

import pytest

from contest_entry import confirmation, instant_win
from contest_entry.confirmation import (
    ConfirmationHandler,
    classify_confirmation_text,
    extract_confirmation_number,
)
from contest_entry.humanizer import Humanizer
from contest_entry.instant_win import (
    InstantWinHandler,
    classify_game_result,
    detect_game_type_from_text,
    scratch_path,
)
from tests.fakes import FakePage


# ==================== CONFIRMATION ====================

@pytest.mark.parametrize("text,outcome", [
    ("Thank you for entering! Good luck.", "confirmed"),
    ("Your entry received. We will email winners.", "confirmed"),
    ("You have already entered this sweepstakes today.", "already-entered"),
    ("Oops, something went wrong. Please try again.", "failed"),
    ("Sorry, this contest has ended.", "failed"),
    ("Loading...", "uncertain"),
    ("", "uncertain"),
])
def test_classify_confirmation_text(text, outcome):
    assert classify_confirmation_text(text).outcome == outcome


def test_already_entered_takes_priority_over_success():
    result = classify_confirmation_text("Thank you! You've already entered this contest.")
    assert result.outcome == "already-entered"


def test_confirmation_number_extracted():
    result = classify_confirmation_text("Thank you!\n Your confirmation number: AB12-9876.")
    assert result.outcome == "confirmed"
    assert result.confirmation_number == "AB12-9876"
    assert extract_confirmation_number("Entry # 48213 recorded") == "48213"
    assert extract_confirmation_number("Thanks for playing") is None


def test_uncertain_maps_to_submitted():
    assert classify_confirmation_text("Welcome back").status.value == "submitted"


def test_handler_reads_page_and_screenshots(tmp_path):
    page = FakePage(scripts={confirmation.PAGE_TEXT_JS: "Thanks! Entry confirmed. Entry # 777"})
    handler = ConfirmationHandler(Humanizer(enabled=False), str(tmp_path))
    result = asyncio.run(handler.handle(page, "e1"))

    assert result.outcome == "confirmed"
    assert result.confirmation_number == "777"
    assert result.screenshot_path.startswith(str(tmp_path))


def test_handler_without_screenshots(tmp_path):
    page = FakePage(scripts={confirmation.PAGE_TEXT_JS: "Something went wrong"})
    result = asyncio.run(ConfirmationHandler(Humanizer(enabled=False), str(tmp_path), False).handle(page, "e2"))
    assert result.outcome == "failed"
    assert result.screenshot_path is None


# ==================== INSTANT WIN ====================

@pytest.mark.parametrize("text,game_type", [
    ("Spin the wheel for a chance to win", "spin-wheel"),
    ("Scratch to reveal your prize", "scratch-off"),
    ("Click to reveal what you won", "click-reveal"),
    ("Play our memory game", "match-game"),
    ("Enter below", "unknown"),
])
def test_game_type_from_text(text, game_type):
    assert detect_game_type_from_text(text) == game_type


def test_classify_win_extracts_prize():
    result = classify_game_result("You won a $50 gift card!", "spin-wheel")
    assert result.played and result.won
    assert "$50 gift card" in result.prize
    assert result.game_type == "spin-wheel"


def test_classify_loss():
    result = classify_game_result("Sorry, better luck next time")
    assert result.played and not result.won
    assert result.prize is None


def test_scratch_path_stays_near_card():
    points = scratch_path(100, 100, 200, 80, passes=6)
    assert len(points) == 13
    for x, y in points:
        assert 100 <= x <= 320
        assert 100 <= y <= 190


def test_play_spin_wheel():
    page = FakePage(
        scripts={instant_win.PAGE_TEXT_JS: "Congratulations! You won a free pizza."},
        visible={"#wheel", ".spin-button"},
    )
    result = asyncio.run(InstantWinHandler(Humanizer(enabled=False)).play(page))

    assert result.game_type == "spin-wheel"
    assert result.won
    assert ("human_click", ".spin-button") in page.actions


def test_play_scratch_off_drags_across_card():
    page = FakePage(
        scripts={
            instant_win.BOUNDS_JS: {"x": 10, "y": 10, "width": 300, "height": 150},
            instant_win.PAGE_TEXT_JS: "Sorry, better luck next time",
        },
        visible={".scratch-card"},
    )
    result = asyncio.run(InstantWinHandler(Humanizer(enabled=False)).play(page))

    assert result.game_type == "scratch-off"
    assert result.played and not result.won
    assert page.mouse.pressed is False
    assert len(page.mouse.moves) > 10


def test_unplayable_game():
    page = FakePage(scripts={instant_win.PAGE_TEXT_JS: "Welcome"})
    result = asyncio.run(InstantWinHandler(Humanizer(enabled=False)).play(page))
    assert not result.played
    assert result.game_type == "unknown"
