import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ["TELEGRAM_BOT_TOKEN"] = "test:token"

from srs_bot.core.typed_config import SchedulerConfig  # noqa: E402
from srs_bot.domain.ports.messaging_gateway import SentMessage  # noqa: E402
from srs_bot.infrastructure.repositories import (  # noqa: E402
    SqlAlchemyCardRepository,
    db_retry_config,
)
from srs_bot.models.base import Base  # noqa: E402
from srs_bot.models.card import CardStatus, ReminderMode  # noqa: E402


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def now():
    """Fixed reference time used as 'now' by scheduling tests."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(
        scan_interval_seconds=60,
        batch_size=5,
        initial_review_minutes=10,
        awaiting_grade_timeout_minutes=720,
        max_interval_days=365,
        delivery_retry_minutes=60,
        delivery_claim_ttl_seconds=300,
    )


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'srs_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlAlchemyCardRepository(
        session_factory, retry_config=db_retry_config(max_attempts=2, base_delay=0.01)
    )


@pytest.fixture
def make_card(store, now):
    """Create a card in the requested state and return it reloaded."""

    async def _make(
        status: CardStatus = CardStatus.LEARNING,
        due: Optional[datetime] = None,
        source_message_ids: Sequence[int] = (11,),
        user_id: int = 42,
        reminder_mode: ReminderMode = ReminderMode.ADAPTIVE,
        pending_message_id: int = 555,
        awaiting_since: Optional[datetime] = None,
    ):
        card = await store.create_pending_card(
            user_id=user_id,
            source_chat_id=-1001,
            source_message_ids=list(source_message_ids),
            content_preview="What is the capital of Peru?",
            reminder_mode=reminder_mode,
        )
        if status == CardStatus.PENDING:
            return await store.get_card(card.id)

        await store.activate(card.id, due or now - timedelta(minutes=1))
        if status == CardStatus.AWAITING_GRADE:
            await store.mark_awaiting_grade(
                card.id,
                user_id,
                pending_message_id,
                awaiting_since or now - timedelta(minutes=5),
            )
        elif status == CardStatus.ARCHIVED:
            await store.set_status(card.id, CardStatus.ARCHIVED)
        return await store.get_card(card.id)

    return _make


class FakeGateway:
    """In-memory MessagingGateway that records every call."""

    def __init__(self) -> None:
        self.copies: List[Dict[str, Any]] = []
        self.sent: List[Dict[str, Any]] = []
        self.cleared: List[tuple] = []
        self.deleted: List[tuple] = []
        self.fail_copy: Optional[Exception] = None
        self.fail_send: Optional[Exception] = None
        self.fail_clear: Optional[Exception] = None
        self.drop_reply = False
        self._next_id = 1000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def copy_content(self, target_chat_id, source_chat_id, message_ids, controls=None):
        if self.fail_copy is not None:
            raise self.fail_copy
        ids = [self._new_id() for _ in message_ids]
        self.copies.append(
            {
                "target": target_chat_id,
                "source": source_chat_id,
                "message_ids": list(message_ids),
                "controls": controls,
                "result": ids,
            }
        )
        return ids

    async def send_text(self, chat_id, text, reply_to=None, controls=None):
        if self.fail_send is not None:
            raise self.fail_send
        message_id = self._new_id()
        self.sent.append(
            {
                "chat_id": chat_id,
                "text": text,
                "reply_to": reply_to,
                "controls": controls,
                "message_id": message_id,
            }
        )
        return SentMessage(
            chat_id=chat_id,
            message_id=message_id,
            replied_to=None if self.drop_reply else reply_to,
        )

    async def clear_controls(self, chat_id, message_id):
        if self.fail_clear is not None:
            raise self.fail_clear
        self.cleared.append((chat_id, message_id))

    async def delete_message(self, chat_id, message_id):
        self.deleted.append((chat_id, message_id))


@pytest.fixture
def fake_gateway():
    return FakeGateway()
