"""
SRS Service
Application surface for spaced-repetition review: wires the interval engine,
dispatcher, sweeper and scheduler loop together and exposes the card
operations used by the Telegram handlers.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Union

from ..core.typed_config import SchedulerConfig
from ..domain.errors import CardNotAwaitingGrade, InvalidStatusTransition
from ..domain.ports.keyboard_builder import KeyboardBuilder
from ..domain.ports.messaging_gateway import MessagingGateway
from ..domain.repositories.card_repository import CardStore
from ..models.base import utcnow
from ..models.card import Card, CardStatus, ContentType, NotificationReason, ReminderMode
from ..models.value_objects import Grade, ReviewOutcome
from .srs.srs_algorithm import (
    CardState,
    compute_initial_review_date,
    compute_review,
    preset_next_review,
)
from .srs.srs_dispatcher import DispatchResult, NotificationDispatcher
from .srs.srs_keyboards import adjust_keyboard_rows, review_keyboard_rows
from .srs.srs_scheduler import ReviewScheduler
from .srs.srs_sweeper import RecoverySweeper

logger = logging.getLogger(__name__)


class SRSService:
    """Service for managing spaced repetition cards in Telegram."""

    def __init__(
        self,
        store: CardStore,
        gateway: MessagingGateway,
        config: SchedulerConfig,
        keyboard_builder: Optional[KeyboardBuilder] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._config = config
        self._keyboard_builder = keyboard_builder

        self.dispatcher = NotificationDispatcher(
            store, gateway, config, controls_factory=self.build_review_controls
        )
        self.sweeper = RecoverySweeper(store, gateway, config)
        self.scheduler = ReviewScheduler(store, self.dispatcher, self.sweeper, config)

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    # -- Controls -------------------------------------------------------------

    def _markup(self, rows: Any) -> Any:
        if self._keyboard_builder is None:
            return rows
        return self._keyboard_builder.build_inline_keyboard(rows)

    def build_review_controls(self, card: Card) -> Any:
        """Grading keyboard for a card, in the platform's markup."""
        return self._markup(
            review_keyboard_rows(card.id, card.reminder_mode, self._config.adaptive_policy)
        )

    def build_adjust_controls(self, card_id: str) -> Any:
        """Preset-interval keyboard shown after "Adjust"."""
        return self._markup(adjust_keyboard_rows(card_id, self._config.max_interval_days))

    # -- Scheduler ------------------------------------------------------------

    def start_scheduler(self) -> None:
        self.scheduler.start()

    async def stop_scheduler(self) -> None:
        await self.scheduler.stop()

    async def trigger_immediate(self, card_id: str) -> DispatchResult:
        """Deliver a card now (``/review_now``)."""
        return await self.scheduler.trigger_immediate(card_id)

    # -- Card operations ------------------------------------------------------

    async def get_card(self, card_id: str) -> Card:
        return await self._store.get_card(card_id)

    async def create_card(
        self,
        user_id: int,
        source_chat_id: int,
        source_message_ids: Sequence[int],
        content_type: ContentType = ContentType.TEXT,
        content_preview: Optional[str] = None,
        reminder_mode: Optional[ReminderMode] = None,
    ) -> Card:
        """Register a new pending card for the intake flow."""
        await self._store.upsert_user(user_id)
        return await self._store.create_pending_card(
            user_id=user_id,
            source_chat_id=source_chat_id,
            source_message_ids=source_message_ids,
            content_type=content_type,
            content_preview=content_preview,
            reminder_mode=reminder_mode or self._config.default_reminder_mode,
        )

    async def apply_grade(
        self,
        card_id: str,
        grade: Union[Grade, str],
        now: Optional[datetime] = None,
    ) -> ReviewOutcome:
        """Grade an awaiting card and schedule its next review.

        Raises:
            CardNotFound: unknown card
            CardNotAwaitingGrade: the card has no outstanding review
            ValueError: unknown grade key
        """
        if not isinstance(grade, Grade):
            grade = Grade.parse(grade)
        now = now or utcnow()

        card = await self._store.get_card(card_id)
        if card.status != CardStatus.AWAITING_GRADE:
            raise CardNotAwaitingGrade(card_id, card.status.value)

        outcome = compute_review(CardState.from_card(card), grade, self._config, now)
        if not await self._store.save_review_result(card_id, outcome, now):
            # Graded concurrently, swept, or rescheduled in the meantime
            raise CardNotAwaitingGrade(card_id)

        await self.dispatcher.cleanup_pending(card)
        logger.info(
            f"Card {card_id} graded {grade.value}: interval {outcome.interval}d, "
            f"next review {outcome.next_review_at.isoformat()}"
        )
        return outcome

    async def activate_card(
        self, card_id: str, now: Optional[datetime] = None
    ) -> datetime:
        """Move a pending card into learning; returns the first review time."""
        now = now or utcnow()
        card = await self._store.get_card(card_id)
        if card.status != CardStatus.PENDING:
            raise InvalidStatusTransition(
                card_id, card.status.value, CardStatus.LEARNING.value
            )

        next_review_at = compute_initial_review_date(
            self._config.initial_review_minutes, now
        )
        if not await self._store.activate(card_id, next_review_at):
            raise InvalidStatusTransition(card_id, "unknown", CardStatus.LEARNING.value)

        logger.info(f"Card {card_id} activated, first review at {next_review_at.isoformat()}")
        return next_review_at

    async def override_next_review(
        self, card_id: str, days: int, now: Optional[datetime] = None
    ) -> datetime:
        """Set the next review to a preset number of days from now."""
        now = now or utcnow()
        card = await self._store.get_card(card_id)
        if card.status not in (CardStatus.LEARNING, CardStatus.AWAITING_GRADE):
            raise InvalidStatusTransition(
                card_id, card.status.value, CardStatus.LEARNING.value
            )

        had_pending = card.has_pending_message()
        if had_pending:
            await self.dispatcher.cleanup_pending(card)

        next_review_at = preset_next_review(days, self._config, now)
        moved = await self._store.override_next_review(
            card_id,
            next_review_at,
            reason=NotificationReason.MANUAL_OVERRIDE if had_pending else None,
        )
        if not moved:
            raise InvalidStatusTransition(card_id, "unknown", CardStatus.LEARNING.value)

        logger.info(f"Card {card_id} manually rescheduled to {next_review_at.isoformat()}")
        return next_review_at

    async def archive_card(self, card_id: str) -> None:
        card = await self._store.get_card(card_id)
        if card.status not in (CardStatus.LEARNING, CardStatus.AWAITING_GRADE):
            raise InvalidStatusTransition(
                card_id, card.status.value, CardStatus.ARCHIVED.value
            )

        await self.dispatcher.cleanup_pending(card)
        if not await self._store.set_status(card_id, CardStatus.ARCHIVED):
            raise InvalidStatusTransition(card_id, "unknown", CardStatus.ARCHIVED.value)
        logger.info(f"Card {card_id} archived")

    async def restore_card(self, card_id: str) -> None:
        card = await self._store.get_card(card_id)
        if card.status != CardStatus.ARCHIVED:
            raise InvalidStatusTransition(
                card_id, card.status.value, CardStatus.LEARNING.value
            )
        if not await self._store.set_status(card_id, CardStatus.LEARNING):
            raise InvalidStatusTransition(card_id, "unknown", CardStatus.LEARNING.value)
        logger.info(f"Card {card_id} restored to learning")

    async def cancel_pending_card(self, card_id: str) -> bool:
        """Drop a card that was never activated."""
        card = await self._store.get_card(card_id)
        if card.status != CardStatus.PENDING:
            raise InvalidStatusTransition(card_id, card.status.value, "deleted")
        deleted = await self._store.delete_card(card_id, only_if_pending=True)
        if deleted:
            logger.info(f"Pending card {card_id} cancelled")
        return deleted

    # -- Users ------------------------------------------------------------------

    async def set_notification_chat(self, user_id: int, chat_id: Optional[int]) -> None:
        await self._store.set_notification_chat(user_id, chat_id)

    # -- Stats ------------------------------------------------------------------

    async def get_stats(
        self, user_id: Optional[int] = None, upcoming_limit: int = 5
    ) -> Dict[str, Any]:
        """Card counts and scheduler state; per-user calls also list upcoming cards."""
        counts = await self._store.count_by_status(user_id)
        last_tick = self.scheduler.last_tick
        upcoming = []
        if user_id is not None and upcoming_limit > 0:
            for card in await self._store.list_upcoming_cards(user_id, upcoming_limit):
                upcoming.append(
                    {
                        "id": card.id,
                        "status": card.status.value,
                        "next_review_at": (
                            card.next_review_at.isoformat() if card.next_review_at else None
                        ),
                        "preview": card.content_preview,
                    }
                )
        return {
            "cards": counts,
            "total": sum(counts.values()),
            "upcoming": upcoming,
            "scheduler": {
                "running": self.scheduler.is_running,
                "last_tick_at": last_tick.started_at.isoformat() if last_tick else None,
                "last_tick_delivered": last_tick.delivered if last_tick else 0,
                "last_tick_failed": last_tick.failed if last_tick else 0,
            },
        }
