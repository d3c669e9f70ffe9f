import logging

from telegram import BotCommand
from telegram.error import TelegramError
from telegram.ext import Application

from ..core.config import Settings
from ..core.database import close_database, init_database
from ..core.typed_config import SchedulerConfig
from ..domain.repositories.card_repository import CardStore
from ..services.srs_service import SRSService
from ..utils.task_tracker import cancel_all_tasks
from .adapters.telegram_keyboard_builder import TelegramKeyboardBuilder
from .adapters.telegram_messaging_gateway import TelegramMessagingGateway
from .handlers.srs_handlers import SERVICE_KEY, register_srs_handlers

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"

BOT_COMMANDS = [
    BotCommand("review_now", "Send a card for review right away"),
    BotCommand("use_this_chat", "Deliver reminders to this chat"),
    BotCommand("srs_stats", "Show review statistics"),
]


async def _post_init(application: Application) -> None:
    settings: Settings = application.bot_data[SETTINGS_KEY]
    service: SRSService = application.bot_data[SERVICE_KEY]

    await init_database(settings.database_url)
    try:
        await application.bot.set_my_commands(BOT_COMMANDS)
    except TelegramError as e:
        logger.warning(f"Could not register bot commands: {e}")
    service.start_scheduler()


async def _post_shutdown(application: Application) -> None:
    service: SRSService = application.bot_data[SERVICE_KEY]
    await service.stop_scheduler()
    await cancel_all_tasks()
    await close_database()
    logger.info("Bot application shutdown")


def build_application(settings: Settings, store: CardStore) -> Application:
    """Build the Telegram application with the review service attached.

    The service lives in ``bot_data`` so handlers can reach it. post_init
    opens the database and starts the scheduler loop; post_shutdown stops
    the loop and closes the database.
    """
    if not settings.telegram_bot_token:
        raise ValueError("Telegram bot token is required")

    application = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )

    service = SRSService(
        store=store,
        gateway=TelegramMessagingGateway(application.bot),
        config=SchedulerConfig.from_settings(settings),
        keyboard_builder=TelegramKeyboardBuilder(),
    )
    application.bot_data[SETTINGS_KEY] = settings
    application.bot_data[SERVICE_KEY] = service

    register_srs_handlers(application)
    logger.info("Telegram bot application configured")
    return application
