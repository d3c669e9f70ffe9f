from .card_repository import CardStore

__all__ = ["CardStore"]
