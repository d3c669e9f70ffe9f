"""TelegramMessagingGateway -- implements MessagingGateway on the Bot API."""

import logging
import re
from typing import Any, List, Optional, Sequence

from telegram import Bot, ReplyParameters
from telegram.error import BadRequest, TelegramError

from ...domain.errors import GatewayError, ReplyTargetMissing
from ...domain.ports.messaging_gateway import MessagingGateway, SentMessage

logger = logging.getLogger(__name__)

REPLY_TARGET_MISSING_RE = re.compile(
    r"reply message not found|message to reply not found|"
    r"replied message not found|message to be replied not found",
    re.IGNORECASE,
)
NOT_MODIFIED_RE = re.compile(r"message is not modified", re.IGNORECASE)


class TelegramMessagingGateway(MessagingGateway):
    """Delivers card content through a python-telegram-bot ``Bot``."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def copy_content(
        self,
        target_chat_id: int,
        source_chat_id: int,
        message_ids: Sequence[int],
        controls: Optional[Any] = None,
    ) -> List[int]:
        copied: List[int] = []
        last_index = len(message_ids) - 1
        for index, message_id in enumerate(message_ids):
            try:
                result = await self._bot.copy_message(
                    chat_id=target_chat_id,
                    from_chat_id=source_chat_id,
                    message_id=message_id,
                    reply_markup=controls if index == last_index else None,
                )
            except TelegramError as e:
                raise GatewayError(
                    f"copy of message {message_id} from {source_chat_id} "
                    f"to {target_chat_id} failed: {e}"
                ) from e
            copied.append(result.message_id)
        return copied

    async def send_text(
        self,
        chat_id: int,
        text: str,
        reply_to: Optional[int] = None,
        controls: Optional[Any] = None,
    ) -> SentMessage:
        reply_parameters = None
        if reply_to is not None:
            reply_parameters = ReplyParameters(
                message_id=reply_to, allow_sending_without_reply=True
            )
        try:
            message = await self._bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_parameters=reply_parameters,
                reply_markup=controls,
            )
        except BadRequest as e:
            if reply_to is not None and REPLY_TARGET_MISSING_RE.search(e.message):
                raise ReplyTargetMissing(chat_id, reply_to) from e
            raise GatewayError(f"send to {chat_id} failed: {e}") from e
        except TelegramError as e:
            raise GatewayError(f"send to {chat_id} failed: {e}") from e

        replied = message.reply_to_message
        return SentMessage(
            chat_id=chat_id,
            message_id=message.message_id,
            replied_to=replied.message_id if replied is not None else None,
        )

    async def clear_controls(self, chat_id: int, message_id: int) -> None:
        try:
            await self._bot.edit_message_reply_markup(
                chat_id=chat_id, message_id=message_id, reply_markup=None
            )
        except BadRequest as e:
            if NOT_MODIFIED_RE.search(e.message):
                logger.debug(f"Controls already removed from {chat_id}/{message_id}")
                return
            raise GatewayError(f"clearing controls on {chat_id}/{message_id} failed: {e}") from e
        except TelegramError as e:
            raise GatewayError(f"clearing controls on {chat_id}/{message_id} failed: {e}") from e

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self._bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as e:
            raise GatewayError(f"deleting {chat_id}/{message_id} failed: {e}") from e
