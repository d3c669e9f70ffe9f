import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from telegram import Update

# Load order (later files override earlier):
# 1. project .env (project defaults)
# 2. project .env.local (local overrides)
project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
env_local = project_root / ".env.local"

if env_file.exists():
    load_dotenv(env_file, override=True)
if env_local.exists():
    load_dotenv(env_local, override=True)

from .bot.bot import build_application  # noqa: E402
from .core.config import get_settings  # noqa: E402
from .core.config_validator import log_config_summary, validate_config  # noqa: E402
from .core.database import get_session_factory  # noqa: E402
from .core.typed_config import SchedulerConfig  # noqa: E402
from .infrastructure.repositories import (  # noqa: E402
    SqlAlchemyCardRepository,
    db_retry_config,
)
from .utils.logging import setup_logging  # noqa: E402
from .version import __version__  # noqa: E402

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the review bot with long polling."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, log_to_file=settings.log_to_file)
    logger.info(f"🚀 SRS review bot {__version__} starting up...")

    errors = validate_config(settings)
    if errors:
        for error in errors:
            logger.error(f"❌ Config error: {error}")
        sys.exit(1)
    log_config_summary(settings, SchedulerConfig.from_settings(settings))

    # Sessions are opened lazily: the database is initialized in post_init,
    # inside the event loop that run_polling owns.
    store = SqlAlchemyCardRepository(
        lambda: get_session_factory()(),
        retry_config=db_retry_config(
            max_attempts=settings.srs_db_retry_attempts,
            base_delay=settings.srs_db_retry_base_delay,
        ),
    )
    application = build_application(settings, store)
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
