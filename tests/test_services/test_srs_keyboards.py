"""Tests for SRS keyboard rows and callback data."""

import uuid

import pytest

from srs_bot.core.typed_config import AdaptivePolicy
from srs_bot.models.card import ReminderMode
from srs_bot.services.srs.srs_keyboards import (
    adjust_keyboard_rows,
    build_callback_data,
    parse_callback_data,
    review_keyboard_rows,
)


def _all_buttons(rows):
    return [button for row in rows for button in row]


class TestReviewKeyboard:
    def test_ease_policy_has_four_grades_and_adjust(self):
        rows = review_keyboard_rows("abc", ReminderMode.ADAPTIVE, AdaptivePolicy.EASE)

        assert [b["callback_data"] for b in rows[0]] == [
            "grade|abc|again",
            "grade|abc|hard",
            "grade|abc|good",
            "grade|abc|easy",
        ]
        assert rows[1] == [{"text": "🗓 Adjust", "callback_data": "adjust|abc"}]

    def test_ladder_policy_has_again_and_ok(self):
        rows = review_keyboard_rows("abc", ReminderMode.ADAPTIVE, AdaptivePolicy.LADDER)
        assert [b["callback_data"] for b in rows[0]] == ["grade|abc|again", "grade|abc|ok"]

    @pytest.mark.parametrize("mode", [ReminderMode.FIXED_DAILY, ReminderMode.FIXED_WEEKLY])
    def test_fixed_modes_have_single_done_button(self, mode):
        rows = review_keyboard_rows("abc", mode, AdaptivePolicy.EASE)
        assert len(rows[0]) == 1
        assert rows[0][0]["callback_data"] == "grade|abc|ok"

    def test_callback_data_under_64_bytes_for_uuid_ids(self):
        card_id = uuid.uuid4().hex
        rows = review_keyboard_rows(card_id) + adjust_keyboard_rows(card_id, 365)
        for button in _all_buttons(rows):
            assert len(button["callback_data"].encode("utf-8")) <= 64


class TestAdjustKeyboard:
    def test_presets_in_rows_of_three_with_back(self):
        rows = adjust_keyboard_rows("abc", 365)

        assert [len(row) for row in rows] == [3, 3, 1, 1]
        assert rows[0][0] == {"text": "1d", "callback_data": "preset|abc|1"}
        assert rows[-1] == [{"text": "⬅️ Back", "callback_data": "review_back|abc"}]

    def test_presets_filtered_by_max_interval(self):
        rows = adjust_keyboard_rows("abc", 14)
        presets = [b["callback_data"] for b in _all_buttons(rows[:-1])]
        assert presets == ["preset|abc|1", "preset|abc|3", "preset|abc|7", "preset|abc|14"]


class TestCallbackData:
    def test_too_long_rejected(self):
        with pytest.raises(ValueError, match="64 bytes"):
            build_callback_data("grade", "x" * 60, "good")

    def test_parse(self):
        assert parse_callback_data("grade|abc|good") == ("grade", ["abc", "good"])
        assert parse_callback_data("adjust|abc") == ("adjust", ["abc"])

    def test_parse_empty(self):
        with pytest.raises(ValueError):
            parse_callback_data("")
