"""
Retry with exponential backoff for translator calls.

Delays grow as ``base_delay * 2**(attempt - 1)``, capped at ``max_delay``,
plus up to ``base_delay`` seconds of random jitter.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from jsontrans_llms.translate.base import BatchMismatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 10.0

_RATE_LIMIT_SIGNALS = ("rate limit", "rate_limit", "too many requests", "429", "quota")
_TIMEOUT_SIGNALS = ("timeout", "timed out", "deadline exceeded", "etimedout")
_TRANSIENT_SIGNALS = (
    "temporarily unavailable",
    "try again",
    "overloaded",
    "connection reset",
    "econnreset",
    "connection error",
    "502",
    "503",
    "504",
)


def _chain(exc: BaseException):
    """``exc`` followed by the exceptions it was raised from."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__


def _status_code(exc: BaseException) -> Optional[int]:
    for link in _chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(link, attr, None)
            if isinstance(value, int):
                return value
    return None


def _mentions(exc: BaseException, signals: tuple[str, ...]) -> bool:
    message = str(exc).lower()
    return any(signal in message for signal in signals)


def is_rate_limit_error(exc: BaseException) -> bool:
    return _status_code(exc) == 429 or _mentions(exc, _RATE_LIMIT_SIGNALS)


def is_timeout_error(exc: BaseException) -> bool:
    if any(isinstance(link, TimeoutError) for link in _chain(exc)):
        return True
    return _mentions(exc, _TIMEOUT_SIGNALS)


def is_retryable_error(exc: BaseException) -> bool:
    """Whether another attempt could plausibly succeed.

    Rate limits, timeouts, connection failures, 5xx responses and batch
    count mismatches are retryable. Wrapped exceptions are classified by
    their whole ``__cause__`` chain.
    """
    if isinstance(exc, BatchMismatchError):
        return True
    if any(isinstance(link, ConnectionError) for link in _chain(exc)):
        return True
    if is_rate_limit_error(exc) or is_timeout_error(exc):
        return True
    status = _status_code(exc)
    if status is not None and status >= 500:
        return True
    return _mentions(exc, _TRANSIENT_SIGNALS)


def backoff_delay(
    attempt: int,
    base_delay: float = BASE_DELAY_SECONDS,
    max_delay: float = MAX_DELAY_SECONDS,
) -> float:
    backoff = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return backoff + random.uniform(0, base_delay)


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = BASE_DELAY_SECONDS,
    max_delay: float = MAX_DELAY_SECONDS,
    is_retryable: Callable[[BaseException], bool] = is_retryable_error,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds or retries are exhausted.

    Args:
        fn: Zero-argument callable
        max_retries: Attempts after the first one
        base_delay: First backoff delay in seconds
        max_delay: Upper bound of the exponential part
        is_retryable: Predicate deciding whether an exception is transient
        label: Name used in log messages
        sleep: Sleep function (replaced in tests)

    Raises:
        The last exception raised by ``fn`` once it is not retryable or
        attempts are exhausted.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            attempt += 1
            retryable = is_retryable(exc)
            if not retryable or attempt > max_retries:
                if retryable:
                    logger.warning("All %s attempts of %s failed: %s", attempt, label, exc)
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.1fs",
                label,
                attempt,
                max_retries + 1,
                exc,
                delay,
            )
            sleep(delay)
