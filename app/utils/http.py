"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
from typing import Callable, TypeVar

import httpx

T = TypeVar("T")


class RetryConfig:
    """Attempt cap plus exponential backoff (initial delay, multiplier, ceiling)."""

    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        multiplier: float = 2.0,
        max_backoff_seconds: float = 60.0,
    ) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.multiplier = multiplier
        self.max_backoff_seconds = max_backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        exponent = max(attempt, 1) - 1
        return min(
            self.backoff_seconds * (self.multiplier**exponent),
            self.max_backoff_seconds,
        )

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.attempts


async def request_with_retry(
    func: Callable[..., httpx.Response],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except (httpx.HTTPError, httpx.TimeoutException) as exc:
            last_exception = exc
            attempt += 1
            if not config.should_retry(attempt):
                break
            await asyncio.sleep(config.delay_for(attempt))

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RetryConfig", "request_with_retry"]
