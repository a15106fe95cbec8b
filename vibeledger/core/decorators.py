import functools
import logging
import time
from typing import Callable, Optional

from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from vibeledger.core.config import settings
from vibeledger.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

TRANSIENT_STORAGE_ERRORS = (OperationalError, PoolTimeoutError)

def retry_on_storage_error(max_attempts: Optional[int] = None, base_delay: Optional[float] = None):
    """
    Retry a unit of work on transient storage failures with exponential backoff.

    The wrapped method must take the session as its first positional argument
    after self. The session is rolled back before each new attempt, and
    StorageUnavailableError is raised once the attempts are exhausted.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, db: Session, *args, **kwargs):
            attempts = max_attempts or settings.STORAGE_RETRY_ATTEMPTS
            delay_base = base_delay if base_delay is not None else settings.STORAGE_RETRY_BASE_DELAY

            for attempt in range(attempts):
                try:
                    return func(self, db, *args, **kwargs)
                except TRANSIENT_STORAGE_ERRORS as e:
                    db.rollback()
                    if attempt == attempts - 1:
                        logger.error(f"{func.__qualname__}: all {attempts} storage attempts exhausted: {e}")
                        raise StorageUnavailableError(
                            "Storage is temporarily unavailable",
                            details={"operation": func.__name__, "attempts": attempts},
                        ) from e

                    delay = min(delay_base * (2 ** attempt), settings.STORAGE_RETRY_MAX_DELAY)
                    logger.warning(f"{func.__qualname__}: attempt {attempt + 1} failed, retrying in {delay}s: {e}")
                    time.sleep(delay)
        return wrapper
    return decorator
