"""TelegramKeyboardBuilder -- implements KeyboardBuilder port for Telegram."""

from typing import Dict, List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from ...domain.ports.keyboard_builder import KeyboardBuilder


class TelegramKeyboardBuilder(KeyboardBuilder):
    """Builds Telegram inline markup from the review keyboard rows."""

    def build_inline_keyboard(
        self, rows: List[List[Dict[str, str]]]
    ) -> InlineKeyboardMarkup:
        """Build an inline keyboard from rows of {text, callback_data} dicts."""
        return InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton(
                        text=btn["text"], callback_data=btn["callback_data"]
                    )
                    for btn in row
                ]
                for row in rows
                if row
            ]
        )
