"""
SRS Command Handlers
Grading callbacks, manual review and notification-chat commands
"""

import html
import logging
from datetime import datetime

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from ...domain.errors import (
    CardNotActivated,
    CardNotAwaitingGrade,
    CardNotFound,
    DeliveryFailure,
    DomainError,
    InvalidStatusTransition,
)
from ...services.srs.srs_keyboards import (
    ACTION_ADJUST,
    ACTION_BACK,
    ACTION_GRADE,
    ACTION_PRESET,
    parse_callback_data,
)
from ...services.srs_service import SRSService

logger = logging.getLogger(__name__)

SERVICE_KEY = "srs_service"


def get_srs_service(context: ContextTypes.DEFAULT_TYPE) -> SRSService:
    return context.application.bot_data[SERVICE_KEY]


def format_review_date(when: datetime) -> str:
    return when.strftime("%Y-%m-%d %H:%M UTC")


async def grade_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle grade|<card_id>|<grade> button presses."""
    query = update.callback_query
    service = get_srs_service(context)

    try:
        _, args = parse_callback_data(query.data)
        card_id, grade = args[0], args[1]
        outcome = await service.apply_grade(card_id, grade)
    except CardNotAwaitingGrade:
        await query.answer("This review is already closed.")
        return
    except CardNotFound:
        await query.answer("Card not found.")
        return
    except (ValueError, IndexError):
        logger.warning(f"Malformed grade callback: {query.data!r}")
        await query.answer("Unknown grade.")
        return
    except Exception as e:
        logger.error(f"Error applying grade from {query.data!r}: {e}", exc_info=True)
        await query.answer("❌ Could not save the grade, please try again.")
        return

    await query.answer(
        f"Next review in {outcome.interval}d ({format_review_date(outcome.next_review_at)})"
    )


async def adjust_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Swap the grade buttons for preset intervals."""
    query = update.callback_query
    service = get_srs_service(context)
    _, args = parse_callback_data(query.data)
    card_id = args[0]

    try:
        await query.edit_message_reply_markup(
            reply_markup=service.build_adjust_controls(card_id)
        )
    except TelegramError as e:
        logger.warning(f"Could not show adjust keyboard for card {card_id}: {e}")
    await query.answer()


async def preset_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle preset|<card_id>|<days>: reschedule manually."""
    query = update.callback_query
    service = get_srs_service(context)

    try:
        _, args = parse_callback_data(query.data)
        card_id, days = args[0], int(args[1])
        next_review_at = await service.override_next_review(card_id, days)
    except (CardNotFound, InvalidStatusTransition) as e:
        logger.info(f"Preset rejected: {e}")
        await query.answer("This card can no longer be rescheduled.")
        return
    except (ValueError, IndexError):
        logger.warning(f"Malformed preset callback: {query.data!r}")
        await query.answer("Unknown interval.")
        return
    except Exception as e:
        logger.error(f"Error applying preset from {query.data!r}: {e}", exc_info=True)
        await query.answer("❌ Could not reschedule, please try again.")
        return

    await query.answer(f"Next review: {format_review_date(next_review_at)}")


async def review_back_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Return from the adjust keyboard to the grade buttons."""
    query = update.callback_query
    service = get_srs_service(context)
    _, args = parse_callback_data(query.data)
    card_id = args[0]

    try:
        card = await service.get_card(card_id)
        await query.edit_message_reply_markup(
            reply_markup=service.build_review_controls(card)
        )
    except CardNotFound:
        await query.answer("Card not found.")
        return
    except TelegramError as e:
        logger.warning(f"Could not restore review keyboard for card {card_id}: {e}")
    await query.answer()


async def review_now_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /review_now <card_id> - deliver a card immediately."""
    service = get_srs_service(context)

    if not context.args:
        await update.message.reply_text("Usage: /review_now <card_id> (see /srs_stats for ids)")
        return

    card_id = context.args[0]
    try:
        result = await service.trigger_immediate(card_id)
    except CardNotFound:
        await update.message.reply_text(f"❌ Card {card_id} not found.")
        return
    except CardNotActivated:
        await update.message.reply_text("⏳ This card has not been activated yet.")
        return
    except InvalidStatusTransition:
        await update.message.reply_text(
            "📦 This card is archived and no longer scheduled for review."
        )
        return
    except DeliveryFailure as e:
        logger.warning(f"Manual review of {card_id} failed: {e}")
        await update.message.reply_text(
            "❌ Could not deliver the card right now; it will be retried later."
        )
        return

    if result.delivered:
        await update.message.reply_text("📬 Card sent for review.")
    else:
        await update.message.reply_text("⏳ This card is already being delivered.")


async def use_this_chat_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /use_this_chat [reset] - choose where reminders are delivered."""
    service = get_srs_service(context)
    user_id = update.effective_user.id

    if context.args and context.args[0].lower() == "reset":
        await service.set_notification_chat(user_id, None)
        await update.message.reply_text("🔔 Reminders will be sent to your private chat.")
        return

    await service.set_notification_chat(user_id, update.effective_chat.id)
    await update.message.reply_text("🔔 Reminders will be sent to this chat.")


async def srs_stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /srs_stats command - show card counts for the caller."""
    service = get_srs_service(context)
    try:
        stats = await service.get_stats(update.effective_user.id)
    except DomainError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    cards = stats["cards"]
    response = (
        "📊 <b>Review stats</b>\n\n"
        f"Total: {stats['total']}\n"
        f"Learning: {cards.get('learning', 0)}\n"
        f"Awaiting grade: {cards.get('awaiting_grade', 0)}\n"
        f"Pending: {cards.get('pending', 0)}\n"
        f"Archived: {cards.get('archived', 0)}"
    )
    upcoming = stats.get("upcoming") or []
    if upcoming:
        lines = []
        for item in upcoming:
            when = item["next_review_at"]
            due = format_review_date(datetime.fromisoformat(when)) if when else "unscheduled"
            status = " (awaiting grade)" if item["status"] == "awaiting_grade" else ""
            preview = html.escape((item.get("preview") or "")[:40])
            lines.append(f"<code>{item['id']}</code> {due}{status}\n   {preview}".rstrip())
        response += "\n\n🗓 <b>Upcoming</b> (use /review_now &lt;id&gt;)\n" + "\n".join(lines)
    await update.message.reply_text(response, parse_mode="HTML")


def register_srs_handlers(application: Application) -> None:
    """Register SRS handlers with the application."""
    application.add_handler(CommandHandler("review_now", review_now_command))
    application.add_handler(CommandHandler("use_this_chat", use_this_chat_command))
    application.add_handler(CommandHandler("srs_stats", srs_stats_command))
    application.add_handler(
        CallbackQueryHandler(grade_callback, pattern=rf"^{ACTION_GRADE}\|")
    )
    application.add_handler(
        CallbackQueryHandler(adjust_callback, pattern=rf"^{ACTION_ADJUST}\|")
    )
    application.add_handler(
        CallbackQueryHandler(preset_callback, pattern=rf"^{ACTION_PRESET}\|")
    )
    application.add_handler(
        CallbackQueryHandler(review_back_callback, pattern=rf"^{ACTION_BACK}\|")
    )

    logger.info("SRS handlers registered")
