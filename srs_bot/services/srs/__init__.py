"""Spaced-repetition review scheduling: interval engine, delivery, recovery, loop."""

from .srs_algorithm import (
    CardState,
    compute_initial_review_date,
    compute_review,
    preset_next_review,
)
from .srs_dispatcher import DispatchResult, NotificationDispatcher
from .srs_scheduler import ReviewScheduler, TickReport
from .srs_sweeper import RecoverySweeper, SweepReport

__all__ = [
    "CardState",
    "compute_initial_review_date",
    "compute_review",
    "preset_next_review",
    "DispatchResult",
    "NotificationDispatcher",
    "ReviewScheduler",
    "TickReport",
    "RecoverySweeper",
    "SweepReport",
]
