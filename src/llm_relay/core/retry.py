"""core.retry

Opt-in, caller-side retry with exponential back-off + optional jitter.

Adapters never retry on their own; a caller that wants retries wraps its
own coroutine:

```python
@with_retry(RetryStrategy(max_attempts=3))
async def ask() -> GenerationResponse:
    return await provider.generate_response(messages)
```

A :class:`RateLimitError` that knows how long to wait (``retry_after``) is
honoured instead of the computed back-off, capped at ``max_backoff_sec``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import secrets
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from pydantic import BaseModel, Field

from llm_relay.core.exceptions import NetworkError, RateLimitError, RequestTimeoutError, ServerError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

P = ParamSpec('P')
T = TypeVar('T')

DEFAULT_RETRY_ON: tuple[type[Exception], ...] = (RateLimitError, RequestTimeoutError, NetworkError, ServerError)


class RetryStrategy(BaseModel):
    """Configuration for exponential back-off retry with optional jitter."""

    max_attempts: int = Field(default=3, ge=1, description='Total attempts including the first call')
    base_backoff_sec: float = Field(default=1.0, ge=0.0, description='Initial delay before first retry (seconds)')
    max_backoff_sec: float = Field(default=60.0, ge=0.0, description='Upper bound for any sleep interval')
    jitter: bool = Field(default=True, description='Add random jitter (0-1s) to each interval')

    model_config = {
        'frozen': True,
    }

    def compute_delay(self, attempt_number: int, error: Exception | None = None) -> float:
        """Calculate sleep duration after the given attempt number (1-indexed)."""
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            return min(float(error.retry_after), self.max_backoff_sec)

        # Calculate exponential backoff with upper bound
        delay = min(self.base_backoff_sec * (2 ** (attempt_number - 1)), self.max_backoff_sec)

        # Add random jitter if enabled
        if self.jitter:
            # Add random value between 0 and 1
            delay += secrets.randbelow(101) / 100

        return delay


def with_retry(
    strategy: RetryStrategy | None = None,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry decorator for coroutine functions.

    Parameters
    ----------
    strategy
        Retry policy. Defaults to RetryStrategy() if None.
    retry_on
        Exception types that trigger a retry. Defaults to
        (RateLimitError, RequestTimeoutError, NetworkError, ServerError).
        Once attempts are exhausted the last error is re-raised unchanged.

    """
    retry_strategy = strategy or RetryStrategy()
    retry_exceptions = retry_on or DEFAULT_RETRY_ON

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt_number = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_exceptions as exc:
                    if attempt_number >= retry_strategy.max_attempts:
                        raise
                    delay = retry_strategy.compute_delay(attempt_number, exc)
                    logger.info(
                        'Attempt %d/%d failed (%s); retrying in %.2fs',
                        attempt_number,
                        retry_strategy.max_attempts,
                        exc.__class__.__name__,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    attempt_number += 1

        return wrapper

    return decorator
