"""
Card, notification history and review log models.

Card: a user-submitted learning item moving through the review lifecycle
    pending -> learning <-> awaiting_grade, with archived as a side state.
CardNotification: one row per delivered reminder (audit/history).
ReviewLog: one row per applied grade, including timeout auto-grades.
"""

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, utcnow


class CardStatus(str, enum.Enum):
    """Lifecycle state of a card."""

    PENDING = "pending"
    LEARNING = "learning"
    AWAITING_GRADE = "awaiting_grade"
    ARCHIVED = "archived"


class ReminderMode(str, enum.Enum):
    """Which interval policy governs a card."""

    ADAPTIVE = "adaptive"
    FIXED_DAILY = "fixed_daily"
    FIXED_WEEKLY = "fixed_weekly"


class ContentType(str, enum.Enum):
    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    OTHER = "other"


class NotificationReason(str, enum.Enum):
    """Why a card was delivered."""

    SCHEDULED = "scheduled"
    MANUAL_NOW = "manual_now"
    MANUAL_OVERRIDE = "manual_override"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Card(Base, TimestampMixin):
    """A learning item tracked through spaced repetition."""

    __tablename__ = "cards"
    __table_args__ = (
        Index("idx_cards_status_next_review", "status", "next_review_at"),
        Index("idx_cards_status_awaiting_since", "status", "awaiting_grade_since"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    # Source reference: origin chat + ordered message ids (media groups span many)
    source_chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_message_ids: Mapped[List[int]] = mapped_column(JSON, nullable=False)

    # Content descriptor
    content_type: Mapped[ContentType] = mapped_column(
        Enum(ContentType, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=ContentType.TEXT,
    )
    content_preview: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_file_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content_file_unique_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    # Scheduling state
    reminder_mode: Mapped[ReminderMode] = mapped_column(
        Enum(ReminderMode, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=ReminderMode.ADAPTIVE,
    )
    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus, values_callable=_enum_values, native_enum=False),
        nullable=False,
        default=CardStatus.PENDING,
    )
    repetition: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    easiness: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    next_review_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_grade: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Delivery bookkeeping
    pending_channel_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    pending_channel_message_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    base_channel_message_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    awaiting_grade_since: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    delivery_claimed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_notification_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    last_notification_reason: Mapped[Optional[NotificationReason]] = mapped_column(
        Enum(NotificationReason, values_callable=_enum_values, native_enum=False),
        nullable=True,
    )
    last_notification_message_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )

    # Relationships
    notifications: Mapped[List["CardNotification"]] = relationship(
        "CardNotification", back_populates="card", cascade="all, delete-orphan"
    )
    review_logs: Mapped[List["ReviewLog"]] = relationship(
        "ReviewLog", back_populates="card", cascade="all, delete-orphan"
    )

    # --- Domain behavior ---

    @property
    def source_refs(self) -> List[int]:
        """Source message ids in original order."""
        return [int(mid) for mid in (self.source_message_ids or [])]

    def has_pending_message(self) -> bool:
        """True while a message carrying grading controls is outstanding."""
        return self.pending_channel_message_id is not None

    def is_schedulable(self) -> bool:
        """Only learning cards are picked up by the scheduler."""
        return self.status == CardStatus.LEARNING

    def __repr__(self) -> str:
        return (
            f"<Card(id={self.id}, user_id={self.user_id}, status={self.status}, "
            f"repetition={self.repetition}, next_review_at={self.next_review_at})>"
        )


class CardNotification(Base):
    """A single delivered reminder for a card."""

    __tablename__ = "card_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    chat_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[NotificationReason] = mapped_column(
        Enum(NotificationReason, values_callable=_enum_values, native_enum=False),
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )

    card: Mapped["Card"] = relationship("Card", back_populates="notifications")

    def __repr__(self) -> str:
        return (
            f"<CardNotification(card_id={self.card_id}, message_id={self.message_id}, "
            f"reason={self.reason})>"
        )


class ReviewLog(Base):
    """Record of a single grade applied to a card."""

    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    grade: Mapped[str] = mapped_column(String(16), nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)

    repetition_before: Mapped[int] = mapped_column(Integer, nullable=False)
    repetition_after: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_before: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_after: Mapped[int] = mapped_column(Integer, nullable=False)
    easiness_before: Mapped[float] = mapped_column(Float, nullable=False)
    easiness_after: Mapped[float] = mapped_column(Float, nullable=False)

    auto: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reviewed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow
    )

    card: Mapped["Card"] = relationship("Card", back_populates="review_logs")

    def __repr__(self) -> str:
        return (
            f"<ReviewLog(card_id={self.card_id}, grade={self.grade}, "
            f"interval={self.interval_before}->{self.interval_after})>"
        )
