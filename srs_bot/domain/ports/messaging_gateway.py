"""MessagingGateway port -- abstracts the chat platform used for reviews."""

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class SentMessage:
    """A message the gateway delivered."""

    chat_id: int
    message_id: int
    # Message id this one replies to, None when the platform dropped the reply
    replied_to: Optional[int] = None


@runtime_checkable
class MessagingGateway(Protocol):
    """Delivers card content and grading controls to a chat.

    Implementations raise GatewayError on failure and the more specific
    ReplyTargetMissing when ``reply_to`` points at a deleted message.
    """

    async def copy_content(
        self,
        target_chat_id: int,
        source_chat_id: int,
        message_ids: Sequence[int],
        controls: Optional[Any] = None,
    ) -> List[int]:
        """Copy source messages in order; attach controls to the last copy."""
        ...

    async def send_text(
        self,
        chat_id: int,
        text: str,
        reply_to: Optional[int] = None,
        controls: Optional[Any] = None,
    ) -> SentMessage:
        """Send a text message, optionally replying to an anchor message."""
        ...

    async def clear_controls(self, chat_id: int, message_id: int) -> None:
        """Remove inline controls from a message."""
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        """Delete a message."""
        ...
