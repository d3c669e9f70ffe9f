"""Tests for Telegram application wiring and lifecycle hooks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.error import NetworkError

from srs_bot.bot import bot as bot_module
from srs_bot.bot.adapters.telegram_messaging_gateway import TelegramMessagingGateway
from srs_bot.bot.bot import SETTINGS_KEY, _post_init, _post_shutdown, build_application
from srs_bot.bot.handlers.srs_handlers import SERVICE_KEY
from srs_bot.core.config import Settings
from srs_bot.services.srs_service import SRSService


def _settings(**overrides):
    values = {"telegram_bot_token": "123456:ABC-DEF", "srs_batch_size": 3}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestBuildApplication:
    def test_service_and_handlers_attached(self):
        store = MagicMock()
        application = build_application(_settings(), store)

        service = application.bot_data[SERVICE_KEY]
        assert isinstance(service, SRSService)
        assert service.config.batch_size == 3
        assert isinstance(service.dispatcher._gateway, TelegramMessagingGateway)
        assert application.bot_data[SETTINGS_KEY].srs_batch_size == 3
        assert len(application.handlers[0]) == 7

    def test_requires_token(self):
        with pytest.raises(ValueError):
            build_application(_settings(telegram_bot_token=""), MagicMock())


def _application(settings):
    application = MagicMock()
    application.bot.set_my_commands = AsyncMock()
    service = MagicMock()
    service.stop_scheduler = AsyncMock()
    application.bot_data = {SETTINGS_KEY: settings, SERVICE_KEY: service}
    return application, service


class TestLifecycleHooks:
    async def test_post_init_opens_database_and_starts_scheduler(self):
        settings = _settings(database_url="sqlite+aiosqlite:///:memory:")
        application, service = _application(settings)

        with patch.object(bot_module, "init_database", AsyncMock()) as init_db:
            await _post_init(application)

        init_db.assert_awaited_once_with("sqlite+aiosqlite:///:memory:")
        application.bot.set_my_commands.assert_awaited_once()
        service.start_scheduler.assert_called_once()

    async def test_command_registration_failure_is_not_fatal(self):
        application, service = _application(_settings())
        application.bot.set_my_commands.side_effect = NetworkError("timed out")

        with patch.object(bot_module, "init_database", AsyncMock()):
            await _post_init(application)

        service.start_scheduler.assert_called_once()

    async def test_post_shutdown_stops_scheduler_then_closes_database(self):
        application, service = _application(_settings())

        with patch.object(bot_module, "close_database", AsyncMock()) as close_db:
            await _post_shutdown(application)

        service.stop_scheduler.assert_awaited_once()
        close_db.assert_awaited_once()
