"""
Bezier paths and humanized mouse and keyboard input.
"""

import asyncio
import random

import pytest

from contest_entry import humanizer as humanizer_module
from contest_entry.errors import EntryTimeoutError
from contest_entry.humanizer import Humanizer, bezier_curve, de_casteljau, speed_factor
from contest_entry.timing import Deadline
from tests.fakes import FakePage


def test_de_casteljau_endpoints_and_midpoint():
    points = [(0, 0), (50, 100), (100, 0)]
    assert de_casteljau(points, 0) == (0, 0)
    assert de_casteljau(points, 1) == (100, 0)
    assert de_casteljau(points, 0.5) == pytest.approx((50, 50))


def test_bezier_curve_starts_and_ends_on_target():
    random.seed(11)
    path = bezier_curve((10, 10), (300, 200), 20)
    assert len(path) == 21
    assert path[0] == pytest.approx((10, 10))
    assert path[-1] == pytest.approx((300, 200))


def test_speed_factor_bell_shape():
    assert speed_factor(0) == pytest.approx(0)
    assert speed_factor(0.5) == pytest.approx(1)
    assert speed_factor(1) == pytest.approx(0, abs=1e-9)


def test_human_click_moves_then_clicks_inside_box():
    page = FakePage()
    humanizer = Humanizer(enabled=False)
    asyncio.run(humanizer.human_click(page, "#go"))

    assert len(page.mouse.moves) >= 16
    (x, y), = page.mouse.clicks
    assert 100 <= x <= 220
    assert 200 <= y <= 230
    assert humanizer.last_mouse == (x, y)


def test_human_type_produces_text(monkeypatch):
    monkeypatch.setattr(humanizer_module, "TYPO_PROBABILITY", 0.0)
    page = FakePage()
    asyncio.run(Humanizer(enabled=False).human_type(page, "#email", "ada@example.com"))

    assert "".join(page.keyboard.typed) == "ada@example.com"
    assert page.keyboard.pressed[:2] == ["Control+a", "Backspace"]


def test_typos_are_corrected(monkeypatch):
    monkeypatch.setattr(humanizer_module, "TYPO_PROBABILITY", 1.0)
    page = FakePage()
    asyncio.run(Humanizer(enabled=False).human_type(page, "#name", "ab"))

    # Each letter: a wrong key, a backspace, then the right key
    assert len(page.keyboard.typed) == 4
    assert page.keyboard.typed[1] == "a"
    assert page.keyboard.typed[3] == "b"
    assert page.keyboard.pressed.count("Backspace") == 3


def test_scroll_direction():
    page = FakePage()
    asyncio.run(Humanizer(enabled=False).human_scroll(page, "down", 400))
    assert page.mouse.wheel_total > 0

    page = FakePage()
    asyncio.run(Humanizer(enabled=False).human_scroll(page, "up", 400))
    assert page.mouse.wheel_total < 0


def test_drag_path_presses_and_releases():
    page = FakePage()
    humanizer = Humanizer(enabled=False)
    asyncio.run(humanizer.drag_path(page, [(0, 0), (10, 10), (20, 0)]))
    assert len(page.mouse.moves) == 3
    assert page.mouse.pressed is False
    assert humanizer.last_mouse == (20, 0)


def test_waits_honour_cancelled_deadline():
    deadline = Deadline()
    deadline.cancel()
    with pytest.raises(EntryTimeoutError):
        asyncio.run(Humanizer(deadline, enabled=False).wait(10, 20))
