"""Tests for SRSService card operations."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from srs_bot.core.typed_config import SchedulerConfig
from srs_bot.domain.errors import (
    CardNotAwaitingGrade,
    CardNotFound,
    InvalidStatusTransition,
)
from srs_bot.domain.ports.keyboard_builder import KeyboardBuilder
from srs_bot.models.card import CardStatus, NotificationReason, ReminderMode
from srs_bot.models.value_objects import Grade
from srs_bot.services.srs_service import SRSService


@pytest.fixture
def service(store, fake_gateway, scheduler_config):
    return SRSService(store, fake_gateway, scheduler_config)


class TestIntake:
    async def test_create_and_activate(self, store, service, now):
        card = await service.create_card(
            user_id=42, source_chat_id=-1001, source_message_ids=[5, 6]
        )
        assert card.status == CardStatus.PENDING
        assert card.reminder_mode == ReminderMode.ADAPTIVE

        first_review = await service.activate_card(card.id, now=now)

        assert first_review == now + timedelta(minutes=10)
        loaded = await store.get_card(card.id)
        assert loaded.status == CardStatus.LEARNING
        assert loaded.next_review_at == first_review

    async def test_default_mode_from_config(self, store, fake_gateway):
        service = SRSService(
            store, fake_gateway, SchedulerConfig(default_reminder_mode=ReminderMode.FIXED_WEEKLY)
        )
        card = await service.create_card(42, -1001, [5])
        assert card.reminder_mode == ReminderMode.FIXED_WEEKLY

    async def test_activate_twice_rejected(self, service, make_card):
        card = await make_card()
        with pytest.raises(InvalidStatusTransition):
            await service.activate_card(card.id)

    async def test_cancel_pending(self, service, make_card):
        card = await make_card(status=CardStatus.PENDING)

        assert await service.cancel_pending_card(card.id) is True
        with pytest.raises(CardNotFound):
            await service.get_card(card.id)

    async def test_cancel_active_card_rejected(self, service, make_card):
        card = await make_card()
        with pytest.raises(InvalidStatusTransition):
            await service.cancel_pending_card(card.id)


class TestApplyGrade:
    async def test_grade_schedules_and_clears_controls(
        self, store, service, fake_gateway, make_card, now
    ):
        card = await make_card(status=CardStatus.AWAITING_GRADE, pending_message_id=555)

        outcome = await service.apply_grade(card.id, "good", now=now)

        assert outcome.interval == 1
        assert fake_gateway.cleared == [(42, 555)]
        loaded = await store.get_card(card.id)
        assert loaded.status == CardStatus.LEARNING
        assert loaded.next_review_at == now + timedelta(days=1)

    async def test_second_grade_rejected(self, service, make_card, now):
        card = await make_card(status=CardStatus.AWAITING_GRADE)
        await service.apply_grade(card.id, Grade.EASY, now=now)

        with pytest.raises(CardNotAwaitingGrade):
            await service.apply_grade(card.id, Grade.EASY, now=now)

    async def test_learning_card_rejected(self, service, make_card):
        card = await make_card()
        with pytest.raises(CardNotAwaitingGrade):
            await service.apply_grade(card.id, "good")

    async def test_unknown_grade(self, service, make_card):
        card = await make_card(status=CardStatus.AWAITING_GRADE)
        with pytest.raises(ValueError):
            await service.apply_grade(card.id, "perfect")

    async def test_lost_race_rejected(self, store, service, make_card, now, monkeypatch):
        card = await make_card(status=CardStatus.AWAITING_GRADE)

        async def lose(*args, **kwargs):
            return False

        monkeypatch.setattr(store, "save_review_result", lose)

        with pytest.raises(CardNotAwaitingGrade):
            await service.apply_grade(card.id, "good", now=now)


class TestOverride:
    async def test_override_awaiting_card(self, store, service, fake_gateway, make_card, now):
        card = await make_card(status=CardStatus.AWAITING_GRADE, pending_message_id=555)

        next_review = await service.override_next_review(card.id, 7, now=now)

        assert next_review == now + timedelta(days=7)
        assert fake_gateway.cleared == [(42, 555)]
        loaded = await store.get_card(card.id)
        assert loaded.status == CardStatus.LEARNING
        assert loaded.next_review_at == next_review
        assert loaded.last_notification_reason == NotificationReason.MANUAL_OVERRIDE

    async def test_override_learning_card_keeps_reason(self, store, service, make_card, now):
        card = await make_card()

        await service.override_next_review(card.id, 3, now=now)

        loaded = await store.get_card(card.id)
        assert loaded.next_review_at == now + timedelta(days=3)
        assert loaded.last_notification_reason is None

    async def test_override_clamped(self, service, make_card, now, store, fake_gateway):
        service = SRSService(store, fake_gateway, SchedulerConfig(max_interval_days=30))
        card = await make_card()
        assert await service.override_next_review(card.id, 90, now=now) == now + timedelta(days=30)

    async def test_override_pending_rejected(self, service, make_card):
        card = await make_card(status=CardStatus.PENDING)
        with pytest.raises(InvalidStatusTransition):
            await service.override_next_review(card.id, 3)


class TestArchive:
    async def test_archive_and_restore(self, store, service, fake_gateway, make_card):
        card = await make_card(status=CardStatus.AWAITING_GRADE, pending_message_id=555)

        await service.archive_card(card.id)
        assert fake_gateway.cleared == [(42, 555)]
        assert (await store.get_card(card.id)).status == CardStatus.ARCHIVED

        await service.restore_card(card.id)
        assert (await store.get_card(card.id)).status == CardStatus.LEARNING

    async def test_restore_requires_archived(self, service, make_card):
        card = await make_card()
        with pytest.raises(InvalidStatusTransition):
            await service.restore_card(card.id)

    async def test_archive_pending_rejected(self, service, make_card):
        card = await make_card(status=CardStatus.PENDING)
        with pytest.raises(InvalidStatusTransition):
            await service.archive_card(card.id)


class TestControls:
    def test_raw_rows_without_builder(self, service):
        card = MagicMock(id="abc", reminder_mode=ReminderMode.ADAPTIVE)
        rows = service.build_review_controls(card)
        assert rows[0][0]["callback_data"] == "grade|abc|again"

    def test_builder_is_used(self, store, fake_gateway, scheduler_config):
        builder = MagicMock(spec=KeyboardBuilder)
        builder.build_inline_keyboard.return_value = "markup"
        service = SRSService(store, fake_gateway, scheduler_config, keyboard_builder=builder)

        assert service.build_adjust_controls("abc") == "markup"
        rows = builder.build_inline_keyboard.call_args.args[0]
        assert rows[-1] == [{"text": "⬅️ Back", "callback_data": "review_back|abc"}]

    async def test_delivered_card_carries_review_controls(
        self, service, fake_gateway, make_card, now
    ):
        card = await make_card()

        await service.scheduler.run_tick(now=now)

        controls = fake_gateway.copies[0]["controls"]
        assert controls[0][2]["callback_data"] == f"grade|{card.id}|good"


class TestStats:
    async def test_counts_and_scheduler_state(self, service, make_card, now):
        await make_card()
        await make_card(status=CardStatus.PENDING)
        await make_card(status=CardStatus.ARCHIVED, user_id=7)

        await service.scheduler.run_tick(now=now)
        stats = await service.get_stats()

        assert stats["total"] == 3
        assert stats["cards"]["awaiting_grade"] == 1
        assert stats["scheduler"]["running"] is False
        assert stats["scheduler"]["last_tick_delivered"] == 1
        assert stats["scheduler"]["last_tick_at"] == now.isoformat()

        mine = await service.get_stats(user_id=7)
        assert mine["total"] == 1
        assert mine["upcoming"] == []
        assert stats["upcoming"] == []

    async def test_upcoming_cards_for_user(self, service, make_card, now):
        card = await make_card(due=now + timedelta(days=1))

        stats = await service.get_stats(user_id=42)

        assert stats["upcoming"] == [
            {
                "id": card.id,
                "status": "learning",
                "next_review_at": (now + timedelta(days=1)).isoformat(),
                "preview": "What is the capital of Peru?",
            }
        ]

    async def test_notification_chat(self, store, service):
        await service.set_notification_chat(42, -100123)
        assert await store.resolve_notification_chat(42) == -100123
