"""
SRS interval engine.

Pure functions that turn a card's scheduling state plus a grade into the
next review date. Adaptive cards use either SM-2 ("ease" policy) or a fixed
interval ladder; fixed-mode cards come back every day or every week.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict

from ...core.typed_config import AdaptivePolicy, SchedulerConfig
from ...models.card import Card, ReminderMode
from ...models.value_objects import Grade, ReviewOutcome

MIN_EASINESS = 1.3
DEFAULT_EASINESS = 2.5

# SM-2 quality per grade; "ok" counts as "good"
GRADE_QUALITY: Dict[Grade, int] = {
    Grade.AGAIN: 0,
    Grade.HARD: 3,
    Grade.GOOD: 4,
    Grade.EASY: 5,
    Grade.OK: 4,
}

FIXED_MODE_INTERVALS: Dict[ReminderMode, int] = {
    ReminderMode.FIXED_DAILY: 1,
    ReminderMode.FIXED_WEEKLY: 7,
}


@dataclass(frozen=True)
class CardState:
    """Scheduling fields of a card, detached from the ORM row."""

    repetition: int = 0
    interval: int = 0
    easiness: float = DEFAULT_EASINESS
    reminder_mode: ReminderMode = ReminderMode.ADAPTIVE

    @classmethod
    def from_card(cls, card: Card) -> "CardState":
        return cls(
            repetition=card.repetition or 0,
            interval=card.interval_days or 0,
            easiness=card.easiness if card.easiness is not None else DEFAULT_EASINESS,
            reminder_mode=card.reminder_mode or ReminderMode.ADAPTIVE,
        )


def clamp_interval(days: int, max_interval_days: int) -> int:
    """Keep an interval within [1, max_interval_days]."""
    return max(1, min(int(days), max_interval_days))


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def compute_initial_review_date(minutes: int, now: datetime) -> datetime:
    """First review after activation; never sooner than one minute."""
    return now + timedelta(minutes=max(1, minutes))


def _sm2(state: CardState, grade: Grade) -> tuple:
    quality = GRADE_QUALITY[grade]

    if quality < 3:
        return quality, 0, 1, state.easiness

    repetition = state.repetition + 1
    if repetition == 1:
        interval = 1
    elif repetition == 2:
        interval = 6
    else:
        interval = max(1, int(_round_half_up(state.interval * state.easiness)))

    # EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02))
    distance = 5 - quality
    easiness = state.easiness + (0.1 - distance * (0.08 + distance * 0.02))
    easiness = max(MIN_EASINESS, _round_half_up(easiness, 2))

    return quality, repetition, interval, easiness


def _ladder(state: CardState, grade: Grade, ladder) -> tuple:
    quality = GRADE_QUALITY[grade]
    if grade.is_failing:
        return quality, 0, 1, state.easiness

    repetition = state.repetition + 1
    step = min(repetition - 1, len(ladder) - 1)
    return quality, repetition, ladder[step], state.easiness


def compute_review(
    state: CardState,
    grade: Grade,
    config: SchedulerConfig,
    now: datetime,
) -> ReviewOutcome:
    """Apply a grade to a card's scheduling state.

    Args:
        state: Current repetition/interval/easiness and reminder mode
        grade: User's self-assessment
        config: Policy, ladder and maximum interval
        now: Time the grade was given

    Returns:
        ReviewOutcome with the new state and next review time
    """
    fixed_interval = FIXED_MODE_INTERVALS.get(state.reminder_mode)
    if fixed_interval is not None:
        quality = GRADE_QUALITY[grade]
        repetition = state.repetition + 1
        interval = fixed_interval
        easiness = state.easiness
    elif config.adaptive_policy == AdaptivePolicy.LADDER:
        quality, repetition, interval, easiness = _ladder(
            state, grade, config.interval_ladder
        )
    else:
        quality, repetition, interval, easiness = _sm2(state, grade)

    interval = clamp_interval(interval, config.max_interval_days)
    return ReviewOutcome(
        grade=grade,
        quality=quality,
        repetition=repetition,
        interval=interval,
        easiness=easiness,
        next_review_at=now + timedelta(days=interval),
    )


def preset_next_review(days: int, config: SchedulerConfig, now: datetime) -> datetime:
    """Next review for a manually chosen interval."""
    return now + timedelta(days=clamp_interval(days, config.max_interval_days))
