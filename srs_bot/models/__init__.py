from .base import Base, TimestampMixin, UTCDateTime, utcnow
from .card import (
    Card,
    CardNotification,
    CardStatus,
    ContentType,
    NotificationReason,
    ReminderMode,
    ReviewLog,
)
from .user import User
from .value_objects import Grade, ReviewOutcome

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "utcnow",
    "Card",
    "CardNotification",
    "CardStatus",
    "ContentType",
    "NotificationReason",
    "ReminderMode",
    "ReviewLog",
    "User",
    "Grade",
    "ReviewOutcome",
]
