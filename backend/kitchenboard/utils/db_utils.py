"""Local storage helpers."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# SQLite reports contention through the error text only
LOCK_MESSAGES = (
    "database is locked",
    "database is busy",
    "disk i/o error",
    "timeout",
)


def is_lock_error(error: Exception) -> bool:
    """Whether a storage error is contention that may clear on its own."""
    text = str(error).lower()
    return any(msg in text for msg in LOCK_MESSAGES)


async def retry_on_lock(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.1,
) -> T:
    """Run a storage operation, backing off while the file is locked.

    A writer can hold the SQLite file past the busy timeout when a forced
    refresh and a token update land together. The delay doubles per attempt;
    the last lock error is re-raised once attempts run out, and any other
    error is raised straight away.
    """
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except (OperationalError, InterfaceError) as e:
            if not is_lock_error(e) or attempt == attempts:
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Local storage busy, retrying in {delay}s (attempt {attempt}/{attempts})")
            await asyncio.sleep(delay)
