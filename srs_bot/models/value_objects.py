"""Domain value objects for grading and review outcomes."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class Grade(str, enum.Enum):
    """User self-assessment of recall.

    again/hard/good/easy drive the ease policy; again/ok drive the ladder
    policy. ``ok`` is accepted by the ease policy as ``good`` and the four
    ease grades are accepted by the ladder policy as pass/fail.
    """

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"
    OK = "ok"

    @property
    def is_failing(self) -> bool:
        return self is Grade.AGAIN

    @classmethod
    def parse(cls, raw: str) -> "Grade":
        """Parse a grade key, raising ValueError for unknown keys."""
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid grade {raw!r}; must be one of {[g.value for g in cls]}"
            ) from None


@dataclass(frozen=True)
class ReviewOutcome:
    """Result of applying a grade to a card's scheduling state."""

    grade: Grade
    quality: int
    repetition: int
    interval: int
    easiness: float
    next_review_at: datetime
