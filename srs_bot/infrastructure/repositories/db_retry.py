"""Transient database error classification for the card store."""

import asyncio

from sqlalchemy.exc import DBAPIError, OperationalError

from ...utils.retry import RetryConfig

# Lower-cased fragments of driver messages that indicate a retryable condition.
_TRANSIENT_MARKERS = (
    "database is locked",
    "database table is locked",
    "database is busy",
    "could not connect",
    "connection refused",
    "connection reset",
    "connection was closed",
    "server closed the connection",
    "terminating connection",
    "timeout",
    "timed out",
    "deadlock detected",
    "could not serialize access",
)

TRANSIENT_DB_EXCEPTIONS: tuple = (
    DBAPIError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def is_transient_db_error(exc: BaseException) -> bool:
    """True when a failed statement is worth repeating unchanged."""
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        message = str(exc.orig if exc.orig is not None else exc).lower()
        if isinstance(exc, OperationalError) and not message:
            return True
        return any(marker in message for marker in _TRANSIENT_MARKERS)
    return False


def db_retry_config(max_attempts: int = 3, base_delay: float = 1.5) -> RetryConfig:
    """Linear backoff (1.5s, 3s, ...) restricted to transient database errors."""
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        linear=True,
        exceptions=TRANSIENT_DB_EXCEPTIONS,
        retry_if=is_transient_db_error,
    )
