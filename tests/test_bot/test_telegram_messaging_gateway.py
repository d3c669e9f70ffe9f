"""Tests for TelegramMessagingGateway error mapping and reply handling."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import BadRequest, Forbidden, NetworkError

from srs_bot.bot.adapters.telegram_messaging_gateway import TelegramMessagingGateway
from srs_bot.domain.errors import GatewayError, ReplyTargetMissing
from srs_bot.domain.ports.messaging_gateway import MessagingGateway


@pytest.fixture
def bot():
    return AsyncMock()


@pytest.fixture
def gateway(bot):
    return TelegramMessagingGateway(bot)


def test_implements_port(gateway):
    assert isinstance(gateway, MessagingGateway)


class TestCopyContent:
    async def test_controls_only_on_last_copy(self, gateway, bot):
        bot.copy_message.side_effect = [MagicMock(message_id=201), MagicMock(message_id=202)]

        ids = await gateway.copy_content(42, -1001, [11, 12], controls="markup")

        assert ids == [201, 202]
        first, second = bot.copy_message.await_args_list
        assert first.kwargs["reply_markup"] is None
        assert second.kwargs["reply_markup"] == "markup"
        assert second.kwargs["from_chat_id"] == -1001
        assert second.kwargs["message_id"] == 12

    async def test_telegram_error_becomes_gateway_error(self, gateway, bot):
        bot.copy_message.side_effect = Forbidden("bot was blocked by the user")

        with pytest.raises(GatewayError):
            await gateway.copy_content(42, -1001, [11])


class TestSendText:
    async def test_reply_reference_reported(self, gateway, bot):
        bot.send_message.return_value = MagicMock(
            message_id=300, reply_to_message=MagicMock(message_id=700)
        )

        sent = await gateway.send_text(42, "review", reply_to=700, controls="markup")

        assert (sent.message_id, sent.replied_to) == (300, 700)
        params = bot.send_message.await_args.kwargs["reply_parameters"]
        assert params.message_id == 700
        assert params.allow_sending_without_reply is True

    async def test_dropped_reply_reported_as_none(self, gateway, bot):
        bot.send_message.return_value = MagicMock(message_id=300, reply_to_message=None)

        sent = await gateway.send_text(42, "review", reply_to=700)

        assert sent.replied_to is None

    async def test_missing_reply_target(self, gateway, bot):
        bot.send_message.side_effect = BadRequest("Message to be replied not found")

        with pytest.raises(ReplyTargetMissing) as exc_info:
            await gateway.send_text(42, "review", reply_to=700)
        assert exc_info.value.message_id == 700

    async def test_other_bad_request(self, gateway, bot):
        bot.send_message.side_effect = BadRequest("Chat not found")

        with pytest.raises(GatewayError) as exc_info:
            await gateway.send_text(42, "review", reply_to=700)
        assert not isinstance(exc_info.value, ReplyTargetMissing)

    async def test_network_error(self, gateway, bot):
        bot.send_message.side_effect = NetworkError("connection reset")
        with pytest.raises(GatewayError):
            await gateway.send_text(42, "review")


class TestClearAndDelete:
    async def test_clear_controls(self, gateway, bot):
        await gateway.clear_controls(42, 300)
        bot.edit_message_reply_markup.assert_awaited_once_with(
            chat_id=42, message_id=300, reply_markup=None
        )

    async def test_not_modified_is_success(self, gateway, bot):
        bot.edit_message_reply_markup.side_effect = BadRequest(
            "Message is not modified: specified new message content and reply markup "
            "are exactly the same"
        )
        await gateway.clear_controls(42, 300)

    async def test_clear_failure(self, gateway, bot):
        bot.edit_message_reply_markup.side_effect = BadRequest("Message to edit not found")
        with pytest.raises(GatewayError):
            await gateway.clear_controls(42, 300)

    async def test_delete_failure(self, gateway, bot):
        bot.delete_message.side_effect = BadRequest("Message can't be deleted")
        with pytest.raises(GatewayError):
            await gateway.delete_message(42, 300)
