"""
Card delivery to the user's notification chat.

First delivery copies the card's source messages into the chat and keeps the
first copy as an anchor. Later deliveries send a short reminder replying to
that anchor; if the anchor is gone the content is copied again. The message
carrying the grading controls becomes the card's pending message.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Tuple

from ...core.typed_config import SchedulerConfig
from ...domain.errors import GatewayError, ReplyTargetMissing
from ...domain.ports.messaging_gateway import MessagingGateway
from ...domain.repositories.card_repository import CardStore
from ...models.base import utcnow
from ...models.card import Card, NotificationReason
from ...utils.logging import log_delivery_error, log_delivery_event

logger = logging.getLogger(__name__)

PATH_COPY = "copy"
PATH_REPLY = "reply"
PATH_RECOPY = "recopy"

ControlsFactory = Callable[[Card], Any]


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one delivery attempt."""

    card_id: str
    delivered: bool
    message_id: Optional[int] = None
    path: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def skipped(self) -> bool:
        """Not delivered, but nothing went wrong (claim or race lost)."""
        return not self.delivered and self.error is None


class NotificationDispatcher:
    """Delivers a single card and records the resulting state."""

    def __init__(
        self,
        store: CardStore,
        gateway: MessagingGateway,
        config: SchedulerConfig,
        controls_factory: Optional[ControlsFactory] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._config = config
        self._controls_factory = controls_factory or (lambda card: None)

    async def dispatch(
        self,
        card: Card,
        reason: NotificationReason,
        now: Optional[datetime] = None,
    ) -> DispatchResult:
        """Deliver a learning card and move it to awaiting_grade.

        Delivery failures are not raised: the card is rescheduled after
        ``delivery_retry_minutes`` and the error is returned in the result.
        """
        now = now or utcnow()
        stale_before = now - timedelta(seconds=self._config.delivery_claim_ttl_seconds)

        if not await self._store.claim_delivery(card.id, now, stale_before):
            logger.debug(f"Card {card.id} not claimable for delivery, skipping")
            return DispatchResult(card_id=card.id, delivered=False)

        try:
            chat_id = await self._store.resolve_notification_chat(card.user_id)
            controls = self._controls_factory(card)
            message_id, path = await self._deliver(card, chat_id, controls)
        except Exception as e:
            return await self._handle_failure(card, reason, now, e)

        marked = await self._store.mark_awaiting_grade(card.id, chat_id, message_id, now)
        if not marked:
            logger.warning(
                f"Card {card.id} changed state during delivery; removing message {message_id}"
            )
            await self._delete_quietly(chat_id, message_id)
            await self._store.release_delivery(card.id)
            log_delivery_event(
                card.id, reason.value, path, message_id, chat_id=chat_id, raced=True
            )
            return DispatchResult(card_id=card.id, delivered=False, path=path)

        try:
            await self._store.record_notification(card.id, chat_id, message_id, reason, now)
        except Exception as e:
            logger.error(
                f"Card {card.id} delivered but notification history not saved: {e}",
                exc_info=True,
            )

        logger.info(
            f"Delivered card {card.id} to chat {chat_id} via {path} "
            f"(reason={reason.value}, message={message_id})"
        )
        log_delivery_event(card.id, reason.value, path, message_id, chat_id=chat_id)
        return DispatchResult(
            card_id=card.id, delivered=True, message_id=message_id, path=path
        )

    async def _deliver(self, card: Card, chat_id: int, controls: Any) -> Tuple[int, str]:
        path = PATH_COPY
        base_message_id = card.base_channel_message_id

        if base_message_id is not None:
            try:
                sent = await self._gateway.send_text(
                    chat_id,
                    self._config.reminder_text,
                    reply_to=base_message_id,
                    controls=controls,
                )
            except ReplyTargetMissing:
                logger.info(
                    f"Anchor message {base_message_id} for card {card.id} is gone, re-copying"
                )
            else:
                if sent.replied_to == base_message_id:
                    return sent.message_id, PATH_REPLY
                logger.warning(
                    f"Reminder for card {card.id} was sent without its reply reference, re-copying"
                )
                await self._delete_quietly(chat_id, sent.message_id)

            await self._store.set_base_message(card.id, None)
            path = PATH_RECOPY

        message_ids = await self._gateway.copy_content(
            chat_id, card.source_chat_id, card.source_refs, controls=controls
        )
        if not message_ids:
            raise GatewayError(f"Copying card {card.id} produced no messages")

        await self._store.set_base_message(card.id, message_ids[0])
        return message_ids[-1], path

    async def _handle_failure(
        self, card: Card, reason: NotificationReason, now: datetime, error: Exception
    ) -> DispatchResult:
        retry_at = now + timedelta(minutes=self._config.delivery_retry_minutes)
        logger.error(
            f"Failed to deliver card {card.id} ({reason.value}): {error}; retrying at {retry_at.isoformat()}",
            exc_info=not isinstance(error, GatewayError),
        )
        log_delivery_error(card.id, reason.value, error, retry_at=retry_at.isoformat())

        try:
            await self._store.reschedule(card.id, retry_at)
        except Exception as e:
            # The claim expires after delivery_claim_ttl_seconds
            logger.error(f"Could not reschedule card {card.id} after failure: {e}", exc_info=True)

        return DispatchResult(card_id=card.id, delivered=False, error=error)

    async def cleanup_pending(self, card: Card) -> bool:
        """Remove grading controls from the card's pending message, if any."""
        if card.pending_channel_message_id is None or card.pending_channel_id is None:
            return False
        try:
            await self._gateway.clear_controls(
                card.pending_channel_id, card.pending_channel_message_id
            )
            return True
        except GatewayError as e:
            logger.warning(
                f"Could not clear controls of message {card.pending_channel_message_id} "
                f"for card {card.id}: {e}"
            )
            return False

    async def _delete_quietly(self, chat_id: int, message_id: int) -> None:
        try:
            await self._gateway.delete_message(chat_id, message_id)
        except GatewayError as e:
            logger.warning(f"Could not delete message {message_id} in chat {chat_id}: {e}")
