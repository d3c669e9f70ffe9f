"""SQLAlchemy implementation of CardStore."""

import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import CardNotFound
from ...models.base import utcnow
from ...models.card import (
    Card,
    CardNotification,
    CardStatus,
    ContentType,
    NotificationReason,
    ReminderMode,
    ReviewLog,
)
from ...models.user import User
from ...models.value_objects import ReviewOutcome
from ...utils.retry import RetryConfig, with_retry
from .db_retry import db_retry_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Values that take a card out of the "message with controls outstanding" state.
_CLEARED_PENDING: Dict[str, Any] = {
    "pending_channel_id": None,
    "pending_channel_message_id": None,
    "awaiting_grade_since": None,
    "delivery_claimed_at": None,
}


class SqlAlchemyCardRepository:
    """Concrete CardStore backed by SQLAlchemy async sessions.

    Each call runs in its own short transaction so the scheduler loop and
    Telegram handlers never share a session. Transitions are conditional
    UPDATEs; the returned bool says whether this caller won.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._session_factory = session_factory
        self._retry_config = retry_config or db_retry_config()

    async def _run(
        self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]
    ) -> T:
        async def attempt() -> T:
            async with self._session_factory() as session:
                try:
                    result = await work(session)
                    await session.commit()
                    return result
                except Exception:
                    await session.rollback()
                    raise

        return await with_retry(attempt, config=self._retry_config, operation=operation)

    @staticmethod
    async def _conditional_update(
        session: AsyncSession, card_id: str, conditions: Sequence[Any], values: Dict[str, Any]
    ) -> bool:
        result = await session.execute(
            update(Card)
            .where(Card.id == card_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # -- Queries ------------------------------------------------------------

    async def list_due_cards(
        self, limit: int, now: Optional[datetime] = None
    ) -> List[Card]:
        now = now or utcnow()

        async def work(session: AsyncSession) -> List[Card]:
            result = await session.scalars(
                select(Card)
                .where(
                    Card.status == CardStatus.LEARNING,
                    Card.next_review_at.is_not(None),
                    Card.next_review_at <= now,
                )
                .order_by(Card.next_review_at.asc())
                .limit(limit)
            )
            return list(result.all())

        return await self._run("list_due_cards", work)

    async def list_expired_awaiting(self, cutoff: datetime) -> List[Card]:
        async def work(session: AsyncSession) -> List[Card]:
            result = await session.scalars(
                select(Card)
                .where(
                    Card.status == CardStatus.AWAITING_GRADE,
                    Card.awaiting_grade_since.is_not(None),
                    Card.awaiting_grade_since <= cutoff,
                )
                .order_by(Card.awaiting_grade_since.asc())
            )
            return list(result.all())

        return await self._run("list_expired_awaiting", work)

    async def get_card(self, card_id: str) -> Card:
        async def work(session: AsyncSession) -> Card:
            card = await session.get(Card, card_id)
            if card is None:
                raise CardNotFound(card_id)
            return card

        return await self._run("get_card", work)

    async def count_by_status(self, user_id: Optional[int] = None) -> Dict[str, int]:
        async def work(session: AsyncSession) -> Dict[str, int]:
            stmt = select(Card.status, func.count(Card.id)).group_by(Card.status)
            if user_id is not None:
                stmt = stmt.where(Card.user_id == user_id)
            rows = (await session.execute(stmt)).all()
            counts = {status.value: 0 for status in CardStatus}
            for status, count in rows:
                counts[CardStatus(status).value] = count
            return counts

        return await self._run("count_by_status", work)

    async def list_upcoming_cards(self, user_id: int, limit: int) -> List[Card]:
        async def work(session: AsyncSession) -> List[Card]:
            result = await session.scalars(
                select(Card)
                .where(
                    Card.user_id == user_id,
                    Card.status.in_([CardStatus.LEARNING, CardStatus.AWAITING_GRADE]),
                )
                .order_by(Card.next_review_at.asc().nulls_last(), Card.created_at.asc())
                .limit(limit)
            )
            return list(result.all())

        return await self._run("list_upcoming_cards", work)

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
        if not source_message_ids:
            raise ValueError("A card needs at least one source message")

        async def work(session: AsyncSession) -> Card:
            card = Card(
                id=card_id or uuid.uuid4().hex,
                user_id=user_id,
                source_chat_id=source_chat_id,
                source_message_ids=[int(mid) for mid in source_message_ids],
                content_type=content_type,
                content_preview=content_preview,
                content_file_id=content_file_id,
                content_file_unique_id=content_file_unique_id,
                reminder_mode=reminder_mode,
                status=CardStatus.PENDING,
                repetition=0,
                interval_days=0,
                easiness=2.5,
            )
            session.add(card)
            await session.flush()
            return card

        card = await self._run("create_pending_card", work)
        logger.info(f"Created pending card {card.id} for user {user_id}")
        return card

    async def delete_card(self, card_id: str, only_if_pending: bool = False) -> bool:
        async def work(session: AsyncSession) -> bool:
            card = await session.get(Card, card_id)
            if card is None:
                return False
            if only_if_pending and card.status != CardStatus.PENDING:
                return False
            await session.execute(
                delete(CardNotification).where(CardNotification.card_id == card_id)
            )
            await session.execute(delete(ReviewLog).where(ReviewLog.card_id == card_id))
            stmt = delete(Card).where(Card.id == card_id)
            if only_if_pending:
                stmt = stmt.where(Card.status == CardStatus.PENDING)
            result = await session.execute(stmt.execution_options(synchronize_session=False))
            return result.rowcount == 1

        return await self._run("delete_card", work)

    # -- Transitions ----------------------------------------------------------

    async def activate(self, card_id: str, next_review_at: datetime) -> bool:
        async def work(session: AsyncSession) -> bool:
            return await self._conditional_update(
                session,
                card_id,
                [Card.status == CardStatus.PENDING],
                {"status": CardStatus.LEARNING, "next_review_at": next_review_at},
            )

        return await self._run("activate", work)

    async def claim_delivery(
        self, card_id: str, now: datetime, stale_before: datetime
    ) -> bool:
        async def work(session: AsyncSession) -> bool:
            return await self._conditional_update(
                session,
                card_id,
                [
                    Card.status == CardStatus.LEARNING,
                    Card.pending_channel_message_id.is_(None),
                    or_(
                        Card.delivery_claimed_at.is_(None),
                        Card.delivery_claimed_at <= stale_before,
                    ),
                ],
                {"delivery_claimed_at": now},
            )

        return await self._run("claim_delivery", work)

    async def release_delivery(self, card_id: str) -> None:
        async def work(session: AsyncSession) -> None:
            await self._conditional_update(
                session, card_id, [], {"delivery_claimed_at": None}
            )

        await self._run("release_delivery", work)

    async def mark_awaiting_grade(
        self, card_id: str, channel_id: int, message_id: int, since: datetime
    ) -> bool:
        async def work(session: AsyncSession) -> bool:
            return await self._conditional_update(
                session,
                card_id,
                [
                    Card.status == CardStatus.LEARNING,
                    Card.pending_channel_message_id.is_(None),
                ],
                {
                    "status": CardStatus.AWAITING_GRADE,
                    "pending_channel_id": channel_id,
                    "pending_channel_message_id": message_id,
                    "awaiting_grade_since": since,
                    "delivery_claimed_at": None,
                },
            )

        return await self._run("mark_awaiting_grade", work)

    async def clear_awaiting_grade(self, card_id: str) -> bool:
        async def work(session: AsyncSession) -> bool:
            # Also repairs a learning card left holding a pending message.
            return await self._conditional_update(
                session,
                card_id,
                [
                    or_(
                        Card.status == CardStatus.AWAITING_GRADE,
                        and_(
                            Card.status == CardStatus.LEARNING,
                            Card.pending_channel_message_id.is_not(None),
                        ),
                    )
                ],
                {"status": CardStatus.LEARNING, **_CLEARED_PENDING},
            )

        return await self._run("clear_awaiting_grade", work)

    async def save_review_result(
        self,
        card_id: str,
        outcome: ReviewOutcome,
        reviewed_at: datetime,
        auto: bool = False,
    ) -> bool:
        async def work(session: AsyncSession) -> bool:
            card = await session.get(Card, card_id)
            if card is None:
                raise CardNotFound(card_id)
            before = (card.repetition, card.interval_days, card.easiness)

            moved = await self._conditional_update(
                session,
                card_id,
                [Card.status == CardStatus.AWAITING_GRADE],
                {
                    "status": CardStatus.LEARNING,
                    "repetition": outcome.repetition,
                    "interval_days": outcome.interval,
                    "easiness": outcome.easiness,
                    "next_review_at": outcome.next_review_at,
                    "last_reviewed_at": reviewed_at,
                    "last_grade": outcome.quality,
                    **_CLEARED_PENDING,
                },
            )
            if not moved:
                return False

            session.add(
                ReviewLog(
                    card_id=card_id,
                    grade=outcome.grade.value,
                    quality=outcome.quality,
                    repetition_before=before[0],
                    repetition_after=outcome.repetition,
                    interval_before=before[1],
                    interval_after=outcome.interval,
                    easiness_before=before[2],
                    easiness_after=outcome.easiness,
                    auto=auto,
                    reviewed_at=reviewed_at,
                )
            )
            return True

        return await self._run("save_review_result", work)

    async def reschedule(self, card_id: str, next_review_at: datetime) -> bool:
        async def work(session: AsyncSession) -> bool:
            return await self._conditional_update(
                session,
                card_id,
                [Card.status.in_([CardStatus.LEARNING, CardStatus.AWAITING_GRADE])],
                {
                    "status": CardStatus.LEARNING,
                    "next_review_at": next_review_at,
                    **_CLEARED_PENDING,
                },
            )

        return await self._run("reschedule", work)

    async def override_next_review(
        self,
        card_id: str,
        next_review_at: datetime,
        reason: Optional[NotificationReason] = None,
    ) -> bool:
        values: Dict[str, Any] = {
            "status": CardStatus.LEARNING,
            "next_review_at": next_review_at,
            **_CLEARED_PENDING,
        }
        if reason is not None:
            values["last_notification_reason"] = reason

        async def work(session: AsyncSession) -> bool:
            return await self._conditional_update(
                session,
                card_id,
                [Card.status.in_([CardStatus.LEARNING, CardStatus.AWAITING_GRADE])],
                values,
            )

        return await self._run("override_next_review", work)

    async def set_status(self, card_id: str, status: CardStatus) -> bool:
        if status == CardStatus.ARCHIVED:

            async def work(session: AsyncSession) -> bool:
                return await self._conditional_update(
                    session,
                    card_id,
                    [Card.status.in_([CardStatus.LEARNING, CardStatus.AWAITING_GRADE])],
                    {"status": CardStatus.ARCHIVED, **_CLEARED_PENDING},
                )

        elif status == CardStatus.LEARNING:

            async def work(session: AsyncSession) -> bool:
                card = await session.get(Card, card_id)
                if card is None:
                    raise CardNotFound(card_id)
                values: Dict[str, Any] = {"status": CardStatus.LEARNING}
                if card.next_review_at is None:
                    values["next_review_at"] = utcnow()
                return await self._conditional_update(
                    session, card_id, [Card.status == CardStatus.ARCHIVED], values
                )

        else:
            raise ValueError(f"set_status only archives or restores, got {status.value}")

        return await self._run("set_status", work)

    # -- Delivery bookkeeping -------------------------------------------------

    async def set_base_message(self, card_id: str, message_id: Optional[int]) -> None:
        async def work(session: AsyncSession) -> None:
            await self._conditional_update(
                session, card_id, [], {"base_channel_message_id": message_id}
            )

        await self._run("set_base_message", work)

    async def record_notification(
        self,
        card_id: str,
        chat_id: int,
        message_id: int,
        reason: NotificationReason,
        sent_at: datetime,
    ) -> None:
        async def work(session: AsyncSession) -> None:
            session.add(
                CardNotification(
                    card_id=card_id,
                    chat_id=chat_id,
                    message_id=message_id,
                    reason=reason,
                    sent_at=sent_at,
                )
            )
            await self._conditional_update(
                session,
                card_id,
                [],
                {
                    "last_notification_at": sent_at,
                    "last_notification_reason": reason,
                    "last_notification_message_id": message_id,
                },
            )

        await self._run("record_notification", work)

    # -- Users ----------------------------------------------------------------

    @staticmethod
    async def _get_or_create_user(session: AsyncSession, user_id: int) -> User:
        user = await session.scalar(select(User).where(User.user_id == user_id))
        if user is None:
            user = User(user_id=user_id)
            session.add(user)
        return user

    async def upsert_user(
        self,
        user_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        async def work(session: AsyncSession) -> User:
            user = await self._get_or_create_user(session, user_id)
            if username is not None:
                user.username = username
            if first_name is not None:
                user.first_name = first_name
            if last_name is not None:
                user.last_name = last_name
            await session.flush()
            return user

        return await self._run("upsert_user", work)

    async def resolve_notification_chat(self, user_id: int) -> int:
        async def work(session: AsyncSession) -> int:
            user = await session.scalar(select(User).where(User.user_id == user_id))
            if user is None:
                return user_id
            return user.get_notification_chat()

        return await self._run("resolve_notification_chat", work)

    async def set_notification_chat(self, user_id: int, chat_id: Optional[int]) -> None:
        async def work(session: AsyncSession) -> None:
            user = await self._get_or_create_user(session, user_id)
            user.notification_chat_id = chat_id

        await self._run("set_notification_chat", work)
        logger.info(f"Notification chat for user {user_id} set to {chat_id}")
