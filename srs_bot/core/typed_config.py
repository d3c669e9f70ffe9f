"""
Typed configuration domain objects.

Replaces scattered env lookups with a Pydantic-validated, immutable config
that is handed to the interval engine, dispatcher, sweeper and scheduler
loop at construction time.
"""

import enum
import logging
from typing import List

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..models.card import ReminderMode
from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_LADDER = [1, 3, 7, 14, 30]


class AdaptivePolicy(str, enum.Enum):
    """How adaptive-mode cards compute their next interval."""

    EASE = "ease"  # SM-2 style, four grades
    LADDER = "ladder"  # fixed interval ladder, again/ok


class TimeoutPolicy(str, enum.Enum):
    """What happens to a card left awaiting a grade past the timeout."""

    REVERT = "revert"  # back to learning, re-delivered on the next tick
    AUTO_GRADE = "auto_grade"  # graded "again" on the user's behalf


class SchedulerConfig(BaseModel):
    """Scheduling, delivery and recovery parameters."""

    model_config = ConfigDict(frozen=True)

    scan_interval_seconds: int = 60
    batch_size: int = 5
    initial_review_minutes: int = 10
    awaiting_grade_timeout_minutes: int = 720
    max_interval_days: int = 365
    delivery_retry_minutes: int = 60
    delivery_claim_ttl_seconds: int = 300

    default_reminder_mode: ReminderMode = ReminderMode.ADAPTIVE
    adaptive_policy: AdaptivePolicy = AdaptivePolicy.EASE
    interval_ladder: List[int] = DEFAULT_INTERVAL_LADDER
    timeout_policy: TimeoutPolicy = TimeoutPolicy.REVERT

    reminder_text: str = "🔔 Time to review this card"

    @field_validator(
        "scan_interval_seconds",
        "batch_size",
        "awaiting_grade_timeout_minutes",
        "max_interval_days",
        "delivery_retry_minutes",
        "delivery_claim_ttl_seconds",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("initial_review_minutes")
    @classmethod
    def initial_delay_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("initial_review_minutes must be >= 0")
        return v

    @field_validator("interval_ladder")
    @classmethod
    def ladder_valid(cls, v: List[int]) -> List[int]:
        if not v:
            raise ValueError("interval_ladder must not be empty")
        if any(step < 1 for step in v):
            raise ValueError("interval_ladder entries must be >= 1")
        if any(later < earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("interval_ladder must be non-decreasing")
        return v

    @model_validator(mode="after")
    def ladder_within_max(self) -> "SchedulerConfig":
        if self.interval_ladder[-1] > self.max_interval_days:
            logger.warning(
                "Interval ladder tops out at %d days, above max_interval_days=%d; "
                "intervals will be clamped",
                self.interval_ladder[-1],
                self.max_interval_days,
            )
        return self

    @property
    def awaiting_grade_timeout_seconds(self) -> int:
        return self.awaiting_grade_timeout_minutes * 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerConfig":
        """Build from application Settings, parsing the comma-separated ladder."""
        raw_ladder = (settings.srs_interval_ladder or "").strip()
        ladder = parse_ladder(raw_ladder) if raw_ladder else list(DEFAULT_INTERVAL_LADDER)
        return cls(
            scan_interval_seconds=settings.srs_scan_interval_seconds,
            batch_size=settings.srs_batch_size,
            initial_review_minutes=settings.srs_initial_review_minutes,
            awaiting_grade_timeout_minutes=settings.srs_awaiting_grade_timeout_minutes,
            max_interval_days=settings.srs_max_interval_days,
            delivery_retry_minutes=settings.srs_delivery_retry_minutes,
            delivery_claim_ttl_seconds=settings.srs_delivery_claim_ttl_seconds,
            default_reminder_mode=ReminderMode(settings.srs_default_reminder_mode),
            adaptive_policy=AdaptivePolicy(settings.srs_adaptive_policy),
            interval_ladder=ladder,
            timeout_policy=TimeoutPolicy(settings.srs_timeout_policy),
            reminder_text=settings.srs_reminder_text,
        )


def parse_ladder(raw: str) -> List[int]:
    """Parse "1,3,7" into [1, 3, 7].

    Blank entries are ignored. Raises ValueError on any entry that is not an
    integer so a mistyped ladder fails at startup.
    """
    steps: List[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            steps.append(int(part))
        except ValueError:
            raise ValueError(f"Invalid interval ladder entry: {part!r}") from None
    return steps
