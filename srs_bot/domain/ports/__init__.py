"""Domain port protocols for decoupling services from infrastructure."""

from .keyboard_builder import KeyboardBuilder
from .messaging_gateway import MessagingGateway, SentMessage

__all__ = ["KeyboardBuilder", "MessagingGateway", "SentMessage"]
