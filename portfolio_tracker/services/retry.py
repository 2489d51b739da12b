# portfolio_tracker/services/retry.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from portfolio_tracker.errors import RateLimitError, RetriesExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RATE_LIMIT_MARKER = "exceeding access rate"


def is_rate_limited(exc: BaseException, marker: str = DEFAULT_RATE_LIMIT_MARKER) -> bool:
    """
    Typed RateLimitError first; otherwise fall back to looking for the
    upstream marker text in the error message.
    """
    if isinstance(exc, RateLimitError):
        return True
    return bool(marker) and marker.lower() in str(exc).lower()


class ResilientCaller:
    """
    Bounded exponential backoff for any upstream call.

    Only rate-limit failures are retried: attempt i (0-based) that fails waits
    backoff_base * 2**i seconds. Anything else propagates untouched.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 5,
        backoff_base: float = 1.0,
        rate_limit_marker: str = DEFAULT_RATE_LIMIT_MARKER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.rate_limit_marker = rate_limit_marker
        self.sleep = sleep

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        log: Optional[Callable[[str], Any]] = None,
    ) -> T:
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        base = backoff_base if backoff_base is not None else self.backoff_base
        emit = log or logger.warning

        def _before_sleep(state: RetryCallState) -> None:
            wait = state.next_action.sleep if state.next_action else 0
            emit(
                f"Rate limit exceeded (attempt {state.attempt_number}/{attempts}): "
                f"{state.outcome.exception()}. Retrying in {wait:g} seconds..."
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=base, exp_base=2, min=0),
            retry=retry_if_exception(lambda exc: is_rate_limited(exc, self.rate_limit_marker)),
            before_sleep=_before_sleep,
            sleep=self.sleep,
        )
        try:
            return await retrying(call)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            emit(f"Failed after maximum retries ({attempts} attempts): {last}")
            raise RetriesExhausted(f"Failed after maximum retries: {last}") from last
