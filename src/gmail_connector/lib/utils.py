"""Shared helpers: provider-call retries, timing and private file permissions."""

import os
import random
import stat
import time
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from googleapiclient.errors import HttpError

from gmail_connector.lib.config import gmail_config, storage_config
from gmail_connector.lib.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_retryable(error: HttpError) -> bool:
    """Rate limiting (429) and server errors (5xx) are worth another attempt."""
    status = error.resp.status
    return status == 429 or 500 <= status < 600


def backoff_delays(
    initial: float,
    multiplier: float,
    cap: float,
    jitter: bool = True,
) -> Iterator[float]:
    """Yield exponentially growing delays, each capped at ``cap`` seconds."""
    delay = initial
    while True:
        actual = delay * (0.5 + random.random()) if jitter else delay
        yield min(actual, cap)
        delay *= multiplier


def retry_on_provider_errors(
    max_attempts: Optional[int] = None,
    initial_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    multiplier: Optional[float] = None,
    jitter: bool = True,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry a Gmail API call on 429/5xx with exponential backoff.

    Any other HttpError, 401 included, is raised on the first attempt: the
    token refresh gate decides what an unauthorized answer means, and 404 on
    history means the cursor expired.

    Args:
        max_attempts: Total attempts (default: gmail_config.max_retries)
        initial_delay: First delay in seconds (default: gmail_config.initial_backoff)
        max_delay: Delay cap in seconds (default: gmail_config.max_backoff)
        multiplier: Growth factor (default: gmail_config.backoff_multiplier)
        jitter: Randomize each delay between 50% and 150%

    Example:
        @retry_on_provider_errors(max_attempts=3)
        def watch(self, user_id, topic):
            return self.service.users().watch(userId=user_id, body=...).execute()
    """
    attempts = max_attempts or gmail_config.max_retries
    first = initial_delay or gmail_config.initial_backoff
    cap = max_delay or gmail_config.max_backoff
    factor = multiplier or gmail_config.backoff_multiplier

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            delays = backoff_delays(first, factor, cap, jitter)

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except HttpError as error:
                    if not is_retryable(error) or attempt == attempts:
                        if attempt > 1:
                            logger.error(f"{func.__name__} failed after {attempt} attempts")
                        raise

                    delay = next(delays)
                    logger.warning(
                        f"{func.__name__} got HTTP {error.resp.status}, "
                        f"attempt {attempt}/{attempts}, retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)

            raise RuntimeError(f"{func.__name__} exhausted retries without a result")

        return wrapper

    return decorator


@contextmanager
def timed(operation: str) -> Iterator[None]:
    """Log how long the enclosed provider call took, at DEBUG."""
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"{operation} took {elapsed_ms:.1f} ms")


def _tighten_permissions(path: Path, mode: int) -> None:
    current = stat.S_IMODE(os.stat(path).st_mode)

    # Group or others have any access
    if not current & (stat.S_IRWXG | stat.S_IRWXO):
        return

    if not storage_config.auto_fix_permissions:
        logger.warning(
            f"{path} is accessible to other users ({oct(current)}). "
            f"AUTO_FIX_PERMISSIONS is disabled; run: chmod {oct(mode)[-3:]} {path}"
        )
        return

    os.chmod(path, mode)
    logger.info(f"Tightened permissions on {path} from {oct(current)} to {oct(mode)}")


def ensure_private_file(path: Path, mode: int = 0o600) -> None:
    """Create ``path`` if missing and make it owner-only (tokens live in it)."""
    if not path.exists():
        path.touch(mode=mode)
    _tighten_permissions(path, mode)


def ensure_private_directory(path: Path, mode: int = 0o700) -> None:
    """Create ``path`` with parents and make it owner-only."""
    # mkdir's mode is filtered by the umask, so check afterwards too
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    _tighten_permissions(path, mode)
