# core_commerce/decorators.py
"""
Decorators and retry policies for database operations
"""
import time
import logging
import asyncio
from functools import wraps
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .constants import (
    DEFAULT_CONNECT_RETRIES, RETRY_BACKOFF_BASE, SLOW_QUERY_THRESHOLD
)

logger = logging.getLogger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a failed connection attempt before backing off"""
    attempt = retry_state.attempt_number
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    total = getattr(retry_state.retry_object.stop, "max_attempt_number", "?")

    logger.warning(
        f"[Database] Connection attempt {attempt}/{total} failed, "
        f"retrying in {wait_time:.0f}s: {exc}"
    )


def connect_retrying(
    retries: int = DEFAULT_CONNECT_RETRIES,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> AsyncRetrying:
    """
    Retry policy for establishing a connection

    Waits ``2 ** attempt`` seconds after each failed attempt and re-raises
    the last error once ``retries`` attempts are exhausted.

    Args:
        retries: Maximum number of attempts
        sleep: Coroutine used to wait between attempts
    """
    if retries < 1:
        raise ValueError("Retries must be at least 1")

    return AsyncRetrying(
        stop=stop_after_attempt(retries),
        wait=wait_exponential(multiplier=RETRY_BACKOFF_BASE, exp_base=RETRY_BACKOFF_BASE),
        retry=retry_if_exception_type(Exception),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )


def log_query_execution(func: Callable) -> Callable:
    """
    Log query execution time and details

    Args:
        func: Coroutine function to decorate
    """
    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.time()
        func_name = func.__name__

        try:
            result = await func(*args, **kwargs)
            elapsed = time.time() - start_time

            if elapsed > SLOW_QUERY_THRESHOLD:
                logger.warning(
                    f"Slow query {func_name} executed in {elapsed:.3f}s"
                )
            else:
                logger.debug(
                    f"Query {func_name} executed in {elapsed:.3f}s"
                )

            return result
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(
                f"Query {func_name} failed after {elapsed:.3f}s: {e}"
            )
            raise

    return async_wrapper
