"""Tests for RecoverySweeper timeout handling."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from srs_bot.core.typed_config import SchedulerConfig, TimeoutPolicy
from srs_bot.domain.errors import GatewayError
from srs_bot.models.card import CardStatus, ReviewLog
from srs_bot.services.srs.srs_sweeper import RecoverySweeper


@pytest.fixture
def sweeper(store, fake_gateway, scheduler_config):
    return RecoverySweeper(store, fake_gateway, scheduler_config)


async def test_reverts_expired_cards(store, sweeper, fake_gateway, make_card, now):
    expired = await make_card(
        status=CardStatus.AWAITING_GRADE,
        awaiting_since=now - timedelta(hours=13),
        pending_message_id=600,
    )
    fresh = await make_card(
        status=CardStatus.AWAITING_GRADE, awaiting_since=now - timedelta(hours=1)
    )

    report = await sweeper.sweep(now=now)

    assert (report.scanned, report.reverted, report.failed) == (1, 1, 0)
    assert fake_gateway.cleared == [(42, 600)]
    reverted = await store.get_card(expired.id)
    assert reverted.status == CardStatus.LEARNING
    assert reverted.pending_channel_message_id is None
    assert reverted.repetition == 0
    assert (await store.get_card(fresh.id)).status == CardStatus.AWAITING_GRADE


async def test_auto_grade_policy(store, fake_gateway, make_card, now, session_factory):
    config = SchedulerConfig(timeout_policy=TimeoutPolicy.AUTO_GRADE)
    sweeper = RecoverySweeper(store, fake_gateway, config)
    card = await make_card(
        status=CardStatus.AWAITING_GRADE, awaiting_since=now - timedelta(hours=13)
    )

    report = await sweeper.sweep(now=now)

    assert report.auto_graded == 1
    loaded = await store.get_card(card.id)
    assert loaded.status == CardStatus.LEARNING
    assert loaded.last_grade == 0
    assert loaded.next_review_at == now + timedelta(days=1)

    async with session_factory() as session:
        log = await session.scalar(select(ReviewLog).where(ReviewLog.card_id == card.id))
    assert log.grade == "again"
    assert log.auto is True


async def test_controls_failure_does_not_block_recovery(
    store, sweeper, fake_gateway, make_card, now
):
    card = await make_card(
        status=CardStatus.AWAITING_GRADE, awaiting_since=now - timedelta(hours=13)
    )
    fake_gateway.fail_clear = GatewayError("message can't be edited")

    report = await sweeper.sweep(now=now)

    assert report.reverted == 1
    assert (await store.get_card(card.id)).status == CardStatus.LEARNING


async def test_card_graded_meanwhile_is_skipped(store, sweeper, make_card, now, monkeypatch):
    card = await make_card(
        status=CardStatus.AWAITING_GRADE, awaiting_since=now - timedelta(hours=13)
    )
    stale = await store.get_card(card.id)
    await store.clear_awaiting_grade(card.id)

    async def list_stale(cutoff):
        return [stale]

    monkeypatch.setattr(store, "list_expired_awaiting", list_stale)

    report = await sweeper.sweep(now=now)

    assert (report.scanned, report.reverted, report.skipped) == (1, 0, 1)


async def test_nothing_expired(sweeper, now):
    report = await sweeper.sweep(now=now)
    assert report.scanned == 0
