from __future__ import annotations

import asyncio
import logging
from typing import List

import pytest

from bidboard.config import RetryPolicy
from bidboard.errors import RemoteError, ValidationError
from bidboard.retry import CircuitBreaker, CircuitBreakerOpen, execute_with_retry

LOGGER = logging.getLogger("tests.retry")


def _flaky(failures: int, calls: List[int]):
    async def action() -> str:
        calls.append(1)
        if len(calls) <= failures:
            raise RemoteError("temporarily unavailable", status_code=503)
        return "ok"

    return action


def test_retries_with_exponential_backoff() -> None:
    calls: List[int] = []
    delays: List[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    result = asyncio.run(
        execute_with_retry(
            _flaky(2, calls),
            policy=RetryPolicy(retries=2, backoff_factor=0.5),
            description="list",
            logger=LOGGER,
            sleeper=fake_sleep,
        )
    )

    assert result == "ok"
    assert len(calls) == 3
    assert delays == [0.5, 1.0]


def test_gives_up_after_configured_retries() -> None:
    calls: List[int] = []
    with pytest.raises(RemoteError):
        asyncio.run(
            execute_with_retry(
                _flaky(5, calls), policy=RetryPolicy(retries=1), description="list", logger=LOGGER
            )
        )
    assert len(calls) == 2


def test_non_remote_errors_are_not_retried() -> None:
    calls: List[int] = []

    async def action() -> None:
        calls.append(1)
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        asyncio.run(
            execute_with_retry(action, policy=RetryPolicy(retries=3), description="x", logger=LOGGER)
        )
    assert calls == [1]


def test_breaker_opens_after_threshold_and_resets_on_success() -> None:
    breaker = CircuitBreaker(threshold=2)
    policy = RetryPolicy()

    for _ in range(2):
        with pytest.raises(RemoteError):
            asyncio.run(
                execute_with_retry(
                    _flaky(1, []), policy=policy, description="list", logger=LOGGER, breaker=breaker
                )
            )
    assert breaker.is_open

    with pytest.raises(CircuitBreakerOpen):
        asyncio.run(
            execute_with_retry(
                _flaky(0, []), policy=policy, description="list", logger=LOGGER, breaker=breaker
            )
        )

    breaker.consecutive_failures = 1
    asyncio.run(
        execute_with_retry(_flaky(0, []), policy=policy, description="list", logger=LOGGER, breaker=breaker)
    )
    assert breaker.consecutive_failures == 0


def test_zero_threshold_never_opens() -> None:
    breaker = CircuitBreaker(threshold=0)
    breaker.record_failure()
    assert breaker.consecutive_failures == 0
    assert not breaker.is_open
