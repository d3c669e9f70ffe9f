"""Recovery of cards left awaiting a grade past the timeout."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...core.typed_config import SchedulerConfig, TimeoutPolicy
from ...domain.errors import GatewayError
from ...domain.ports.messaging_gateway import MessagingGateway
from ...domain.repositories.card_repository import CardStore
from ...models.base import utcnow
from ...models.card import Card
from ...models.value_objects import Grade
from .srs_algorithm import CardState, compute_review

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scanned: int = 0
    reverted: int = 0
    auto_graded: int = 0
    skipped: int = 0
    failed: int = 0


class RecoverySweeper:
    """Returns expired awaiting cards to learning (or grades them "again")."""

    def __init__(
        self, store: CardStore, gateway: MessagingGateway, config: SchedulerConfig
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._config = config

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utcnow()
        cutoff = now - timedelta(minutes=self._config.awaiting_grade_timeout_minutes)
        report = SweepReport()

        cards = await self._store.list_expired_awaiting(cutoff)
        report.scanned = len(cards)

        for card in cards:
            try:
                await self._recover(card, now, report)
            except Exception as e:
                report.failed += 1
                logger.error(f"Failed to recover awaiting card {card.id}: {e}", exc_info=True)

        if report.scanned:
            logger.info(
                f"Sweep: {report.scanned} expired, {report.reverted} reverted, "
                f"{report.auto_graded} auto-graded, {report.skipped} skipped, "
                f"{report.failed} failed"
            )
        return report

    async def _recover(self, card: Card, now: datetime, report: SweepReport) -> None:
        await self._clear_controls(card)

        if self._config.timeout_policy == TimeoutPolicy.AUTO_GRADE:
            outcome = compute_review(
                CardState.from_card(card), Grade.AGAIN, self._config, now
            )
            moved = await self._store.save_review_result(card.id, outcome, now, auto=True)
            if moved:
                report.auto_graded += 1
                logger.info(f"Card {card.id} auto-graded 'again' after timeout")
        else:
            moved = await self._store.clear_awaiting_grade(card.id)
            if moved:
                report.reverted += 1
                logger.info(f"Card {card.id} returned to learning after timeout")

        if not moved:
            report.skipped += 1

    async def _clear_controls(self, card: Card) -> None:
        if card.pending_channel_message_id is None or card.pending_channel_id is None:
            return
        try:
            await self._gateway.clear_controls(
                card.pending_channel_id, card.pending_channel_message_id
            )
        except GatewayError as e:
            logger.warning(f"Could not clear controls for expired card {card.id}: {e}")
