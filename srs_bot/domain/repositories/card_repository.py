"""CardStore protocol -- defines the durable card state contract.

Every transition method is a single conditional update keyed by the card's
current status and returns True only when the row actually moved. That
makes the store the serialization point between a scheduler tick, a manual
trigger and a grading callback touching the same card.
"""

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from ...models.card import Card, CardStatus, ContentType, NotificationReason, ReminderMode
from ...models.user import User
from ...models.value_objects import ReviewOutcome


@runtime_checkable
class CardStore(Protocol):
    """Repository interface for Card state and delivery bookkeeping."""

    # -- Queries ------------------------------------------------------------

    async def list_due_cards(
        self, limit: int, now: Optional[datetime] = None
    ) -> List[Card]:
        """Learning cards with next_review_at <= now, oldest due first."""
        ...

    async def list_expired_awaiting(self, cutoff: datetime) -> List[Card]:
        """Cards awaiting a grade since at or before ``cutoff``."""
        ...

    async def get_card(self, card_id: str) -> Card:
        """Return the card or raise CardNotFound."""
        ...

    async def count_by_status(self, user_id: Optional[int] = None) -> Dict[str, int]:
        """Number of cards per status, optionally for one user."""
        ...

    async def list_upcoming_cards(self, user_id: int, limit: int) -> List[Card]:
        """A user's learning and awaiting cards, soonest review first."""
        ...

    # -- Intake ---------------------------------------------------------------

    async def create_pending_card(
        self,
        user_id: int,
        source_chat_id: int,
        source_message_ids: Sequence[int],
        content_type: ContentType = ContentType.TEXT,
        content_preview: Optional[str] = None,
        content_file_id: Optional[str] = None,
        content_file_unique_id: Optional[str] = None,
        reminder_mode: ReminderMode = ReminderMode.ADAPTIVE,
        card_id: Optional[str] = None,
    ) -> Card:
        """Insert a new card in ``pending``."""
        ...

    async def delete_card(self, card_id: str, only_if_pending: bool = False) -> bool:
        """Delete a card and its history."""
        ...

    # -- Transitions ----------------------------------------------------------

    async def activate(self, card_id: str, next_review_at: datetime) -> bool:
        """pending -> learning."""
        ...

    async def claim_delivery(
        self, card_id: str, now: datetime, stale_before: datetime
    ) -> bool:
        """Reserve the per-card delivery slot of a learning card."""
        ...

    async def release_delivery(self, card_id: str) -> None:
        """Drop a delivery claim without touching anything else."""
        ...

    async def mark_awaiting_grade(
        self, card_id: str, channel_id: int, message_id: int, since: datetime
    ) -> bool:
        """learning -> awaiting_grade with the message carrying the controls."""
        ...

    async def clear_awaiting_grade(self, card_id: str) -> bool:
        """awaiting_grade -> learning without grading."""
        ...

    async def save_review_result(
        self,
        card_id: str,
        outcome: ReviewOutcome,
        reviewed_at: datetime,
        auto: bool = False,
    ) -> bool:
        """awaiting_grade -> learning with a new schedule."""
        ...

    async def reschedule(self, card_id: str, next_review_at: datetime) -> bool:
        """Put a learning/awaiting card back to learning at a given time."""
        ...

    async def override_next_review(
        self,
        card_id: str,
        next_review_at: datetime,
        reason: Optional[NotificationReason] = None,
    ) -> bool:
        """Move next_review_at of a learning/awaiting card, clearing any pending message."""
        ...

    async def set_status(self, card_id: str, status: CardStatus) -> bool:
        """Archive or restore a card."""
        ...

    # -- Delivery bookkeeping -------------------------------------------------

    async def set_base_message(self, card_id: str, message_id: Optional[int]) -> None:
        """Record (or clear) the first delivered copy used as reply anchor."""
        ...

    async def record_notification(
        self,
        card_id: str,
        chat_id: int,
        message_id: int,
        reason: NotificationReason,
        sent_at: datetime,
    ) -> None:
        """Append a notification to the card's history."""
        ...

    # -- Users ----------------------------------------------------------------

    async def upsert_user(
        self,
        user_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """Create the user row or refresh its profile fields."""
        ...

    async def resolve_notification_chat(self, user_id: int) -> int:
        """User's reminder destination, or their direct chat."""
        ...

    async def set_notification_chat(self, user_id: int, chat_id: Optional[int]) -> None:
        """Set (or reset) where a user's reminders go."""
        ...
