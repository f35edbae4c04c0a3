"""
Entry strategies and the selector that picks one per contest.

Selection is a pure function over contest metadata plus the first-page
analysis, so it can be tested without a browser.
"""

from enum import Enum
from typing import Dict

from loguru import logger

from contest_entry.strategies.base import EntryContext, EntryStrategy
from contest_entry.strategies.instant_win import InstantWinStrategy
from contest_entry.strategies.multi_step import MultiStepStrategy
from contest_entry.strategies.simple_form import SimpleFormStrategy


class StrategyKind(str, Enum):
    SIMPLE_FORM = "simple-form"
    MULTI_STEP = "multi-step"
    INSTANT_WIN = "instant-win"


INSTANT_WIN_TYPES = ("instant_win", "instant-win")


def select_strategy(entry_method: str, contest_type: str, is_multi_step: bool = False) -> StrategyKind:
    """
    Priority: instant-win contest type, then a detected multi-step layout,
    then the single-page form for every other entry method or type.
    """
    if contest_type in INSTANT_WIN_TYPES:
        kind = StrategyKind.INSTANT_WIN
    elif is_multi_step:
        kind = StrategyKind.MULTI_STEP
    else:
        kind = StrategyKind.SIMPLE_FORM
    logger.debug(f"Strategy {kind.value} for method={entry_method} type={contest_type} multi_step={is_multi_step}")
    return kind


def default_strategies() -> Dict[StrategyKind, EntryStrategy]:
    return {
        StrategyKind.SIMPLE_FORM: SimpleFormStrategy(),
        StrategyKind.MULTI_STEP: MultiStepStrategy(),
        StrategyKind.INSTANT_WIN: InstantWinStrategy(),
    }


__all__ = [
    "EntryContext", "EntryStrategy", "StrategyKind", "select_strategy", "default_strategies",
    "SimpleFormStrategy", "MultiStepStrategy", "InstantWinStrategy",
]
