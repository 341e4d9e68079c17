"""Retry and circuit-breaker wrapping for awaitable remote calls."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .config import RetryPolicy
from .errors import RemoteError

T = TypeVar("T")


class CircuitBreakerOpen(RemoteError):
    """The breaker refused the call without contacting the remote."""


@dataclass
class CircuitBreaker:
    """Counts consecutive remote failures; a threshold of 0 disables it."""

    threshold: int
    consecutive_failures: int = 0

    @property
    def is_open(self) -> bool:
        return 0 < self.threshold <= self.consecutive_failures

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self) -> None:
        if self.threshold > 0:
            self.consecutive_failures += 1


def backoff_delay(policy: RetryPolicy, attempt: int) -> float:
    """Seconds to wait before retry number ``attempt`` (1-based)."""
    return max(0.0, policy.backoff_factor * 2 ** (attempt - 1))


async def execute_with_retry(
    action: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    description: str,
    logger: logging.Logger,
    breaker: Optional[CircuitBreaker] = None,
    sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``action`` up to ``policy.retries + 1`` times.

    Only :class:`RemoteError` triggers another attempt. The breaker counts a
    failure once per exhausted call, not once per attempt.
    """

    if breaker is not None and breaker.is_open:
        raise CircuitBreakerOpen(f"Circuit breaker open for {description}")

    for attempt in range(1, policy.retries + 2):
        try:
            result = await action()
        except RemoteError as exc:
            if attempt > policy.retries:
                if breaker is not None:
                    breaker.record_failure()
                raise
            delay = backoff_delay(policy, attempt)
            logger.warning(
                "%s failed (attempt %d of %d), retrying in %.2fs: %s",
                description,
                attempt,
                policy.retries + 1,
                delay,
                exc,
            )
            if delay:
                await sleeper(delay)
        else:
            if breaker is not None:
                breaker.record_success()
            return result
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["CircuitBreaker", "CircuitBreakerOpen", "backoff_delay", "execute_with_retry"]
