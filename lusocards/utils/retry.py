"""Rate-limit aware retry wrapper for external provider calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Config
from ..exceptions import CollaboratorError, RateLimitError
from .logger import setup_logger

logger = setup_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "quota", "exhausted")


def is_rate_limit_error(exc: BaseException) -> bool:
    """Check whether an exception signals provider throttling."""
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, CollaboratorError) and exc.status == 429:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


async def call_with_retry(
    fn: Callable[[], Awaitable[Any]],
    retries: Optional[int] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """
    Run an async provider call, retrying only on rate limits.

    Delays double after each throttled attempt (2s, 4s, 8s with defaults).
    Any other error propagates immediately.

    Args:
        fn: Zero-argument coroutine function performing the call
        retries: Number of retries after the first attempt (defaults to Config.RETRIES)
        delay: Initial delay in seconds (defaults to Config.RETRY_DELAY)
        sleep: Sleep coroutine, replaceable in tests

    Returns:
        Whatever fn returns

    Raises:
        CollaboratorError: If still rate limited after all retries
    """
    retries = Config.RETRIES if retries is None else retries
    delay = Config.RETRY_DELAY if delay is None else delay

    retrying = AsyncRetrying(
        retry=retry_if_exception(is_rate_limit_error),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=delay, exp_base=2),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )

    try:
        return await retrying(fn)
    except RetryError as e:
        last = e.last_attempt.exception()
        logger.error(f"Rate limit persisted after {retries} retries: {last}")
        raise CollaboratorError(f"Rate limit persisted after {retries} retries: {last}") from last
