"""
Review scheduler loop.

Every ``scan_interval_seconds`` the loop delivers a batch of due learning
cards and then sweeps cards whose grading window has expired. Manual
"review now" requests go through the same dispatcher and are serialized
against the loop by the store's per-card delivery claim.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ...core.typed_config import SchedulerConfig
from ...domain.errors import (
    CardNotActivated,
    DeliveryFailure,
    InvalidStatusTransition,
)
from ...domain.repositories.card_repository import CardStore
from ...models.base import utcnow
from ...models.card import Card, CardStatus, NotificationReason
from ...utils.task_tracker import create_tracked_task
from .srs_dispatcher import DispatchResult, NotificationDispatcher
from .srs_sweeper import RecoverySweeper, SweepReport

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    started_at: datetime
    skipped_tick: bool = False
    due: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: int = 0
    failed_card_ids: List[str] = field(default_factory=list)
    sweep: Optional[SweepReport] = None


class ReviewScheduler:
    """Periodic delivery of due cards plus timeout recovery."""

    def __init__(
        self,
        store: CardStore,
        dispatcher: NotificationDispatcher,
        sweeper: RecoverySweeper,
        config: SchedulerConfig,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._sweeper = sweeper
        self._config = config

        self._tick_lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._last_tick: Optional[TickReport] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_tick(self) -> Optional[TickReport]:
        return self._last_tick

    def start(self) -> None:
        """Start the loop; runs a tick immediately."""
        if self.is_running:
            logger.warning("Review scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = create_tracked_task(self._run_loop(), name="srs_review_scheduler")
        logger.info(
            f"Review scheduler started (every {self._config.scan_interval_seconds}s, "
            f"batch {self._config.batch_size})"
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop the loop, letting an in-flight tick finish first."""
        if self._task is None:
            return
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Review scheduler did not stop within {timeout}s, cancelled")
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Review scheduler stopped")

    async def _run_loop(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.run_tick()
            except Exception as e:
                logger.error(f"Review tick failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._config.scan_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

    async def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        """Deliver one batch of due cards, then sweep expired awaiting cards."""
        now = now or utcnow()
        if self._tick_lock.locked():
            logger.debug("Review tick already in progress, skipping")
            return TickReport(started_at=now, skipped_tick=True)

        async with self._tick_lock:
            report = TickReport(started_at=now)
            cards = await self._store.list_due_cards(self._config.batch_size, now)
            report.due = len(cards)

            for card in cards:
                try:
                    result = await self._deliver_due(card, now)
                except Exception as e:
                    logger.error(f"Failed to process due card {card.id}: {e}", exc_info=True)
                    report.failed += 1
                    report.failed_card_ids.append(card.id)
                    continue

                if result is None or result.skipped:
                    report.skipped += 1
                elif result.delivered:
                    report.delivered += 1
                else:
                    report.failed += 1
                    report.failed_card_ids.append(card.id)

            try:
                report.sweep = await self._sweeper.sweep(now)
            except Exception as e:
                logger.error(f"Awaiting-grade sweep failed: {e}", exc_info=True)

            if report.due:
                logger.info(
                    f"Review tick: {report.due} due, {report.delivered} delivered, "
                    f"{report.skipped} skipped, {report.failed} failed"
                )
            self._last_tick = report
            return report

    async def _reset_pending(self, card: Card) -> Card:
        await self._dispatcher.cleanup_pending(card)
        await self._store.clear_awaiting_grade(card.id)
        return await self._store.get_card(card.id)

    async def _deliver_due(self, card: Card, now: datetime) -> Optional[DispatchResult]:
        if card.has_pending_message() or card.status == CardStatus.AWAITING_GRADE:
            card = await self._reset_pending(card)
        if not card.is_schedulable():
            logger.debug(f"Card {card.id} is {card.status.value}, not delivering")
            return None
        return await self._dispatcher.dispatch(card, NotificationReason.SCHEDULED, now)

    async def trigger_immediate(
        self, card_id: str, now: Optional[datetime] = None
    ) -> DispatchResult:
        """Deliver a card right away regardless of its due time.

        Raises:
            CardNotFound: unknown card
            CardNotActivated: card is still pending
            InvalidStatusTransition: card is archived
            DeliveryFailure: the messaging layer failed (card was rescheduled)
        """
        card = await self._store.get_card(card_id)

        if card.status == CardStatus.PENDING:
            raise CardNotActivated(card_id)
        if card.status == CardStatus.ARCHIVED:
            raise InvalidStatusTransition(
                card_id, card.status.value, CardStatus.AWAITING_GRADE.value
            )
        if card.status == CardStatus.AWAITING_GRADE or card.has_pending_message():
            card = await self._reset_pending(card)

        result = await self._dispatcher.dispatch(card, NotificationReason.MANUAL_NOW, now)
        if result.error is not None:
            raise DeliveryFailure(card_id, result.error)
        return result
