"""
Bot command handlers package.

- srs_handlers.py: grading callbacks, /review_now, /use_this_chat, /srs_stats
"""

from .srs_handlers import (
    adjust_callback,
    grade_callback,
    preset_callback,
    register_srs_handlers,
    review_back_callback,
    review_now_command,
    srs_stats_command,
    use_this_chat_command,
)

__all__ = [
    "adjust_callback",
    "grade_callback",
    "preset_callback",
    "register_srs_handlers",
    "review_back_callback",
    "review_now_command",
    "srs_stats_command",
    "use_this_chat_command",
]
