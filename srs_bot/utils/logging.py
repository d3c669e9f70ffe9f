import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional, Union

import structlog

DELIVERY_LOGGER_NAME = "srs_delivery"


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    logs_dir: Union[str, Path] = "logs",
) -> None:
    """Set up logging for the bot process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
        logs_dir: Directory for the rotating log files
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            (
                structlog.processors.JSONRenderer()
                if log_to_file
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # httpx logs every Bot API call at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not log_to_file:
        return

    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)

    app_handler = logging.handlers.RotatingFileHandler(
        logs_path / "app.log", maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
    )
    app_handler.setLevel(logging.INFO)
    app_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
        )
    )
    root_logger.addHandler(app_handler)

    # One JSON line per delivery attempt
    delivery_handler = logging.handlers.RotatingFileHandler(
        logs_path / "srs_delivery.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
    )
    delivery_handler.setLevel(logging.DEBUG)
    delivery_handler.setFormatter(logging.Formatter("%(message)s"))

    delivery_logger = logging.getLogger(DELIVERY_LOGGER_NAME)
    delivery_logger.handlers.clear()
    delivery_logger.addHandler(delivery_handler)
    delivery_logger.setLevel(logging.DEBUG)
    delivery_logger.propagate = True

    error_handler = logging.handlers.RotatingFileHandler(
        logs_path / "errors.log", maxBytes=5 * 1024 * 1024, backupCount=10  # 5MB
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s - %(exc_info)s"
        )
    )
    root_logger.addHandler(error_handler)


def get_delivery_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Structured logger for card delivery records."""
    return structlog.get_logger(name or DELIVERY_LOGGER_NAME)


def log_delivery_event(
    card_id: str,
    reason: str,
    path: str,
    message_id: Optional[int],
    logger: Optional[structlog.BoundLogger] = None,
    **details: Any,
) -> None:
    """Record a successful (or raced) delivery attempt.

    Args:
        card_id: Card that was delivered
        reason: scheduled / manual_now / manual_override
        path: copy, reply or recopy
        message_id: Message now carrying the grading controls
        logger: Logger to use (delivery logger if not provided)
    """
    if logger is None:
        logger = get_delivery_logger()

    logger.info(
        "card_delivery",
        card_id=card_id,
        reason=reason,
        path=path,
        message_id=message_id,
        **details,
    )


def log_delivery_error(
    card_id: str,
    reason: str,
    error: Exception,
    logger: Optional[structlog.BoundLogger] = None,
    **details: Any,
) -> None:
    """Record a failed delivery attempt with the error type and message."""
    if logger is None:
        logger = get_delivery_logger()

    logger.error(
        "card_delivery_failed",
        card_id=card_id,
        reason=reason,
        error_type=type(error).__name__,
        error_message=str(error),
        **details,
    )
