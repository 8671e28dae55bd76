"""Async utility functions and the error taxonomy.

This module provides:
- Custom exceptions shared by the engine and the adapters
- Retry decorators with exponential backoff
- Rate limiting with token bucket algorithm
- Cooperative cancellation tokens
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class CheckSearchError(Exception):
    """Base exception for all check-search errors."""


class InvalidCriteria(CheckSearchError):
    """Rule search criteria cannot produce a query.

    Fatal to the owning check only; callers treat it as "nothing to check".
    """


class CollaboratorError(CheckSearchError):
    """The search backend failed or returned an unusable response."""


class RateLimitError(CollaboratorError):
    """Search backend rate limit exceeded.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class CheckStateError(CheckSearchError):
    """A check was asked to do something its current state does not allow."""


class NoFixAvailable(CheckSearchError):
    """A code action was requested for a diagnostic without a fix."""


# =============================================================================
# Retry Decorator
# =============================================================================

# Gateway and throttling responses that are worth another attempt
TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})


def is_transient(exc: BaseException) -> bool:
    """Return True for transport failures a retry may get past."""
    if isinstance(exc, httpx.TimeoutException | httpx.NetworkError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUSES
    return False


def _retry_after(exc: BaseException | None) -> float | None:
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    value = exc.response.headers.get("Retry-After", "")
    return float(value) if value.isdigit() else None


def _log_retry(retry_state: RetryCallState) -> None:
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            operation=getattr(retry_state.fn, "__name__", "unknown"),
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Create a retry decorator with exponential backoff.

    By default timeouts, network errors and the HTTP statuses in
    TRANSIENT_STATUSES are retried. A Retry-After header on the failed
    response replaces the backoff, capped at max_wait.

    Args:
        max_attempts: Maximum number of attempts, including the first.
        min_wait: Minimum wait time between attempts (seconds).
        max_wait: Maximum wait time between attempts (seconds).
        retry_on: Exception types to retry on instead of the default policy.

    Returns:
        A retry decorator configured with the given parameters.
    """
    backoff = wait_exponential(multiplier=1, min=min_wait, max=max_wait)

    def wait(retry_state: RetryCallState) -> float:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        delay = _retry_after(exception)
        if delay is None:
            return backoff(retry_state)
        return min(delay, max_wait)

    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        retry=retry_if_exception_type(retry_on) if retry_on else retry_if_exception(is_transient),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Rate Limiter
# =============================================================================


class RateLimiter:
    """Token bucket rate limiter for async operations.

    Tokens are added to the bucket at a fixed rate, and each operation
    consumes one token. If no tokens are available, the operation waits
    until a token becomes available.

    Example:
        limiter = RateLimiter(rate=10, capacity=20)

        async with limiter:
            await some_api_call()
    """

    def __init__(self, rate: float, capacity: float | None = None) -> None:
        """Initialize the rate limiter.

        Args:
            rate: Number of operations allowed per second.
            capacity: Maximum number of tokens in the bucket (burst capacity).
                     Defaults to rate (no bursting beyond 1 second).
        """
        if rate <= 0:
            raise ValueError("Rate must be positive")

        self._rate = rate
        self._capacity = capacity if capacity is not None else rate
        self._tokens = self._capacity
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_update
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_update = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens from the bucket, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire.

        Raises:
            ValueError: If tokens exceeds capacity.
        """
        if tokens > self._capacity:
            msg = f"Cannot acquire {tokens} tokens; capacity is {self._capacity}"
            raise ValueError(msg)

        async with self._lock:
            self._refill()

            if self._tokens >= tokens:
                self._tokens -= tokens
                return

            deficit = tokens - self._tokens
            wait_time = deficit / self._rate

            log.debug("rate_limiter_waiting", wait_time=wait_time, deficit=deficit)
            await asyncio.sleep(wait_time)

            self._refill()
            self._tokens -= tokens

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        pass


# =============================================================================
# Cancellation Utilities
# =============================================================================


class CancellationToken:
    """Flag a running check sets to stop consuming its stream.

    Example:
        token = CancellationToken()

        async for candidate in stream:
            if token.is_cancelled:
                break
            ...

        # From dispose()
        token.cancel()
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation."""
        self._cancelled = True
