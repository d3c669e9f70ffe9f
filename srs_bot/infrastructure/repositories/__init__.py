from .db_retry import db_retry_config, is_transient_db_error
from .sqlalchemy_card_repository import SqlAlchemyCardRepository

__all__ = [
    "SqlAlchemyCardRepository",
    "db_retry_config",
    "is_transient_db_error",
]
