"""
Typed domain errors for the review scheduler.

Callers distinguish rejected operations (wrong card state), messaging
failures and the self-healing "reply target missing" case by type instead
of inspecting error strings.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for all domain-specific errors."""


# ---------------------------------------------------------------------------
# Card lifecycle
# ---------------------------------------------------------------------------


class CardNotFound(DomainError):
    """Card with the given ID does not exist."""

    def __init__(self, card_id: str) -> None:
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class CardNotActivated(DomainError):
    """Card is still pending and cannot be reviewed yet."""

    def __init__(self, card_id: str) -> None:
        self.card_id = card_id
        super().__init__(f"Card {card_id} is not activated yet")


class CardNotAwaitingGrade(DomainError):
    """A grade arrived for a card that is not waiting for one."""

    def __init__(self, card_id: str, status: Optional[str] = None) -> None:
        self.card_id = card_id
        self.status = status
        suffix = f" (status={status})" if status else ""
        super().__init__(f"Card {card_id} is not awaiting a grade{suffix}")


class InvalidStatusTransition(DomainError):
    """Requested status change is not allowed from the card's current state."""

    def __init__(self, card_id: str, current: str, target: str) -> None:
        self.card_id = card_id
        self.current = current
        self.target = target
        super().__init__(f"Card {card_id} cannot move from {current} to {target}")


# ---------------------------------------------------------------------------
# Messaging gateway
# ---------------------------------------------------------------------------


class GatewayError(DomainError):
    """The messaging layer rejected or failed a call."""


class ReplyTargetMissing(GatewayError):
    """The message a reminder should reply to no longer exists."""

    def __init__(self, chat_id: int, message_id: int) -> None:
        self.chat_id = chat_id
        self.message_id = message_id
        super().__init__(f"Reply target {message_id} missing in chat {chat_id}")


class DeliveryFailure(DomainError):
    """A card could not be delivered; it has been rescheduled."""

    def __init__(self, card_id: str, cause: Exception) -> None:
        self.card_id = card_id
        self.cause = cause
        super().__init__(f"Delivery of card {card_id} failed: {cause}")
