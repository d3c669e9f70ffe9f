"""
Grading and adjust keyboards as plain row data.

Rows are lists of {text, callback_data} dicts; the bot layer turns them into
InlineKeyboardMarkup through the KeyboardBuilder port. Callback data carries
only the card id, never content, and must stay under Telegram's 64 bytes.
"""

from typing import Dict, List, Sequence, Tuple

from ...core.typed_config import AdaptivePolicy
from ...models.card import ReminderMode
from ...models.value_objects import Grade

CALLBACK_DATA_LIMIT = 64
CALLBACK_SEPARATOR = "|"

ACTION_GRADE = "grade"
ACTION_ADJUST = "adjust"
ACTION_PRESET = "preset"
ACTION_BACK = "review_back"

PRESET_INTERVAL_DAYS: Tuple[int, ...] = (1, 3, 7, 14, 30, 60, 90)
PRESETS_PER_ROW = 3

Rows = List[List[Dict[str, str]]]

_EASE_BUTTONS = [
    ("🔄 Again", Grade.AGAIN),
    ("😓 Hard", Grade.HARD),
    ("✅ Good", Grade.GOOD),
    ("⚡ Easy", Grade.EASY),
]

_LADDER_BUTTONS = [
    ("🔄 Again", Grade.AGAIN),
    ("✅ OK", Grade.OK),
]

_FIXED_BUTTONS = [
    ("✅ Done", Grade.OK),
]


def build_callback_data(action: str, *parts: object) -> str:
    """Join an action and its arguments, enforcing the 64-byte limit."""
    data = CALLBACK_SEPARATOR.join([action, *(str(p) for p in parts)])
    if len(data.encode("utf-8")) > CALLBACK_DATA_LIMIT:
        raise ValueError(f"SRS callback data exceeds 64 bytes: {data}")
    return data


def parse_callback_data(data: str) -> Tuple[str, List[str]]:
    """Split "grade|<card_id>|good" into ("grade", ["<card_id>", "good"])."""
    if not data:
        raise ValueError("Empty callback data")
    action, *args = data.split(CALLBACK_SEPARATOR)
    return action, args


def _button(text: str, callback_data: str) -> Dict[str, str]:
    return {"text": text, "callback_data": callback_data}


def review_keyboard_rows(
    card_id: str,
    mode: ReminderMode = ReminderMode.ADAPTIVE,
    policy: AdaptivePolicy = AdaptivePolicy.EASE,
) -> Rows:
    """Grade buttons for the card's mode plus an adjust row."""
    if mode != ReminderMode.ADAPTIVE:
        buttons = _FIXED_BUTTONS
    elif policy == AdaptivePolicy.LADDER:
        buttons = _LADDER_BUTTONS
    else:
        buttons = _EASE_BUTTONS

    grade_row = [
        _button(label, build_callback_data(ACTION_GRADE, card_id, grade.value))
        for label, grade in buttons
    ]
    adjust_row = [_button("🗓 Adjust", build_callback_data(ACTION_ADJUST, card_id))]
    return [grade_row, adjust_row]


def adjust_keyboard_rows(
    card_id: str,
    max_interval_days: int,
    presets: Sequence[int] = PRESET_INTERVAL_DAYS,
) -> Rows:
    """Preset interval buttons (within the maximum) and a back button."""
    allowed = [days for days in presets if days <= max_interval_days]
    buttons = [
        _button(f"{days}d", build_callback_data(ACTION_PRESET, card_id, days))
        for days in allowed
    ]
    rows: Rows = [
        buttons[i : i + PRESETS_PER_ROW] for i in range(0, len(buttons), PRESETS_PER_ROW)
    ]
    rows.append([_button("⬅️ Back", build_callback_data(ACTION_BACK, card_id))])
    return rows
