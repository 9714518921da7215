"""Tests for retry module."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from shopagent_core.exceptions import IndexOutOfRangeError, NetworkError, SelectorNotFoundError
from shopagent_core.retry import (
    RetryPolicy,
    is_transient_error,
    navigate_with_retry,
    retry,
    wait_for_condition,
    with_retry,
)

FAST = RetryPolicy(max_retries=2, initial_delay_ms=1, max_delay_ms=5)


class TestRetryPolicy:
    """Backoff delay computation."""

    def test_exponential_growth(self):
        policy = RetryPolicy(initial_delay_ms=100, backoff_factor=2.0, max_delay_ms=10000)
        assert policy.delay_ms(0) == 100
        assert policy.delay_ms(1) == 200
        assert policy.delay_ms(3) == 800

    def test_capped_at_max_delay(self):
        policy = RetryPolicy(initial_delay_ms=1000, max_delay_ms=1500)
        assert policy.delay_ms(5) == 1500

    def test_jitter_stays_within_half_to_full(self):
        policy = RetryPolicy(initial_delay_ms=1000, max_delay_ms=1000, jitter=True)
        for _ in range(20):
            assert 500 <= policy.delay_ms(0) <= 1000


class TestErrorClassification:
    """Transient vs permanent errors."""

    def test_selector_not_found_is_transient(self):
        assert is_transient_error(SelectorNotFoundError())

    def test_timeouts_are_transient(self):
        assert is_transient_error(asyncio.TimeoutError())
        assert is_transient_error(NetworkError("connection reset"))

    def test_index_out_of_range_is_permanent(self):
        assert not is_transient_error(IndexOutOfRangeError(5, 3))

    def test_value_error_is_permanent(self):
        assert not is_transient_error(ValueError("bad value"))

    def test_unknown_type_uses_message_keywords(self):
        assert is_transient_error(RuntimeError("Element is detached from DOM"))
        assert not is_transient_error(RuntimeError("something else entirely"))


class TestRetry:
    """The bounded retry loop."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        calls = 0

        async def succeeds():
            nonlocal calls
            calls += 1
            return "ok"

        assert await retry(succeeds, FAST) == "ok"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_success_after_transient_failure(self):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise SelectorNotFoundError("not yet")
            return "ok"

        assert await retry(flaky, FAST) == "ok"
        assert calls == 2

    @pytest.mark.asyncio
    async def test_exhausted_reraises_original_error(self):
        """max_retries=2 means three calls, then the last error propagates."""
        calls = 0

        async def always_fails():
            nonlocal calls
            calls += 1
            raise NetworkError(f"down #{calls}")

        with pytest.raises(NetworkError, match="down #3"):
            await retry(always_fails, FAST)
        assert calls == 3

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self):
        calls = 0

        async def broken():
            nonlocal calls
            calls += 1
            raise IndexOutOfRangeError(9, 2)

        with pytest.raises(IndexOutOfRangeError):
            await retry(broken, FAST)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_on_retry_hook_receives_attempt_and_delay(self):
        seen = []

        async def always_fails():
            raise NetworkError("down")

        with pytest.raises(NetworkError):
            await retry(always_fails, FAST, on_retry=lambda n, e, d: seen.append((n, d)))
        assert [n for n, _ in seen] == [1, 2]

    @pytest.mark.asyncio
    async def test_arguments_are_forwarded(self):
        async def add(a, b=0):
            return a + b

        assert await retry(add, FAST, 2, b=3) == 5

    @pytest.mark.asyncio
    async def test_decorator(self):
        calls = 0

        @with_retry(FAST)
        async def flaky():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise TimeoutError("slow")
            return calls

        assert await flaky() == 3


class TestWaitForCondition:
    """Fixed-interval polling."""

    @pytest.mark.asyncio
    async def test_condition_met(self):
        state = {"n": 0}

        async def ready():
            state["n"] += 1
            return state["n"] >= 3

        assert await wait_for_condition(ready, timeout_ms=1000, interval_ms=1)
        assert state["n"] == 3

    @pytest.mark.asyncio
    async def test_timeout_returns_false(self):
        async def never():
            return False

        assert not await wait_for_condition(never, timeout_ms=20, interval_ms=5)


def _response(status):
    response = MagicMock()
    response.status = status
    response.ok = status < 400
    return response


class TestNavigateWithRetry:
    """page.goto wrapper."""

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        page = MagicMock()
        page.goto = AsyncMock(side_effect=[_response(503), _response(200)])

        assert await navigate_with_retry(page, "https://www.amazon.in/dp/B0A", policy=FAST)
        assert page.goto.await_count == 2

    @pytest.mark.asyncio
    async def test_client_error_is_accepted(self):
        page = MagicMock()
        page.goto = AsyncMock(return_value=_response(404))

        assert await navigate_with_retry(page, "https://www.amazon.in/dp/B0A", policy=FAST)
        assert page.goto.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_navigation_raises_network_error(self):
        page = MagicMock()
        page.goto = AsyncMock(side_effect=ValueError("bad url"))

        with pytest.raises(NetworkError, match="Navigation to not-a-url failed"):
            await navigate_with_retry(page, "not-a-url", policy=FAST)
        assert page.goto.await_count == 1
