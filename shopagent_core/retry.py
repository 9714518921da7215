"""
Retry Logic with Exponential Backoff

Bounded-retry primitive used by DOM-wait helpers, page navigation and the
language-model call path.

Usage:
    from shopagent_core.retry import RetryPolicy, retry, with_retry

    policy = RetryPolicy(max_retries=2, initial_delay_ms=500)
    products = await retry(adapter.get_search_results, policy)

    @with_retry(RetryPolicy(max_retries=3))
    async def fetch_page(url):
        ...
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

import aiohttp
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .exceptions import (
    ElementNotClickableError,
    IndexOutOfRangeError,
    MissingLinkError,
    NetworkError,
    SelectorNotFoundError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration passed per call site."""
    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    jitter: bool = False

    def delay_ms(self, attempt: int) -> float:
        """
        Delay before the retry following failed ``attempt`` (0-based).

        ``min(max_delay_ms, initial_delay_ms * backoff_factor ** attempt)``,
        scaled by a random factor in [0.5, 1.0] when jitter is on.
        """
        delay = min(float(self.max_delay_ms), self.initial_delay_ms * (self.backoff_factor ** attempt))
        if self.jitter:
            delay *= 0.5 + random.random() / 2
        return delay


# Policies used across the code base
ACTION_POLICY = RetryPolicy(initial_delay_ms=1000, max_delay_ms=4000)
NAVIGATION_POLICY = RetryPolicy(max_retries=2, initial_delay_ms=2000, max_delay_ms=30000)
LLM_POLICY = RetryPolicy(max_retries=2, initial_delay_ms=1000, max_delay_ms=8000, jitter=True)


TRANSIENT_ERRORS = (
    SelectorNotFoundError,
    ElementNotClickableError,
    NetworkError,
    PlaywrightTimeoutError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    aiohttp.ClientError,
)

# Validation / programmer errors never retry
PERMANENT_ERRORS = (
    IndexOutOfRangeError,
    MissingLinkError,
    ValueError,
    TypeError,
    KeyError,
    AttributeError,
)

TRANSIENT_KEYWORDS = [
    "timeout", "timed out", "connection", "network", "refused",
    "reset", "aborted", "failed to load", "not found", "detached",
]


def is_transient_error(error: BaseException) -> bool:
    """
    Classify an error before retrying.

    Transient: element-not-found, not-clickable, timeouts, network errors.
    Everything in PERMANENT_ERRORS propagates immediately.
    Unknown types fall back to keyword matching on the message.
    """
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    if isinstance(error, PERMANENT_ERRORS):
        return False
    error_msg = str(error).lower()
    return any(keyword in error_msg for keyword in TRANSIENT_KEYWORDS)


async def retry(
    fn: Callable[..., Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    *args,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    on_retry: Optional[Callable[[int, BaseException, float], Any]] = None,
    **kwargs,
) -> T:
    """
    Call ``fn`` until it succeeds or ``policy.max_retries`` retries are spent.

    Args:
        fn: Async callable
        policy: Retry configuration
        is_retryable: Error classifier; non-retryable errors re-raise at once
        on_retry: Optional hook called with (attempt, error, delay_ms)

    Returns:
        Result of ``fn``

    Raises:
        The last error raised by ``fn``
    """
    total_attempts = policy.max_retries + 1
    name = getattr(fn, "__name__", repr(fn))

    for attempt in range(total_attempts):
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                logger.debug(f"Non-retryable error in {name}: {e}")
                raise

            if attempt + 1 >= total_attempts:
                logger.error(f"Retry exhausted for {name} after {total_attempts} attempts: {e}")
                raise

            delay_ms = policy.delay_ms(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{total_attempts} failed for {name}: {e}. "
                f"Retrying in {delay_ms / 1000:.1f}s..."
            )
            if on_retry:
                on_retry(attempt + 1, e, delay_ms)
            await asyncio.sleep(delay_ms / 1000)

    raise RuntimeError("unreachable")  # pragma: no cover


def with_retry(policy: RetryPolicy = RetryPolicy(), is_retryable: Callable[[BaseException], bool] = is_transient_error):
    """
    Decorator form of :func:`retry`.

    Example:
        @with_retry(RetryPolicy(max_retries=3))
        async def fetch_page(url):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await retry(func, policy, *args, is_retryable=is_retryable, **kwargs)
        return wrapper
    return decorator


async def wait_for_condition(
    predicate: Callable[[], Awaitable[bool]],
    timeout_ms: int = 10000,
    interval_ms: int = 500,
) -> bool:
    """
    Poll ``predicate`` at a fixed interval until it is true or time runs out.

    Returns:
        True if the condition was met, False on timeout
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    while True:
        if await predicate():
            return True
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval_ms / 1000)



async def navigate_with_retry(
    page,
    url: str,
    timeout: int = 30000,
    wait_until: str = "domcontentloaded",
    policy: RetryPolicy = NAVIGATION_POLICY,
) -> bool:
    """
    ``page.goto`` with retries on timeouts and 5xx responses.

    A 4xx response is logged and accepted. Anything that still fails is
    raised as :class:`NetworkError`.
    """
    @with_retry(policy)
    async def _goto():
        response = await page.goto(url, timeout=timeout, wait_until=wait_until)
        if response is not None and response.status >= 500:
            raise NetworkError(f"Server error {response.status} for {url}")
        if response is not None and not response.ok:
            logger.warning(f"Navigation to {url} returned {response.status}")
        return True

    try:
        return await _goto()
    except NetworkError:
        raise
    except Exception as e:
        raise NetworkError(f"Navigation to {url} failed: {e}") from e
