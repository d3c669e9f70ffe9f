from typing import Optional

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, unique=True, nullable=False, index=True
    )
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Chat that receives review reminders; None means the user's own DM
    notification_chat_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )

    # --- Domain behavior ---

    def get_notification_chat(self) -> int:
        """Return the reminder destination, falling back to the direct chat."""
        if self.notification_chat_id is not None:
            return self.notification_chat_id
        return self.user_id

    def get_display_name(self) -> str:
        """Return a human-readable display name.

        Priority: first+last name > username > 'User {user_id}'.
        """
        parts = [
            p
            for p in (self.first_name, self.last_name)
            if p  # skip None and empty strings
        ]
        if parts:
            return " ".join(parts)
        if self.username:
            return self.username
        return f"User {self.user_id}"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, user_id={self.user_id}, username={self.username})>"
