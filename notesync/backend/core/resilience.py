"""
Resilience Infrastructure.

Breaker factory, retry policy and the composed call used for the
non-authoritative dependencies of the sync client (cloud backup).
Every event is logged with a `resilience_event` field.

Composition, outside-in:
    Circuit Breaker (aiobreaker) → Retry (tenacity) → Call

A call rejected by an open breaker is never retried, and one retried
sequence counts as a single breaker failure.

Usage:
    from notesync.backend.core.resilience import RetryPolicy, call_with_resilience

    breaker = create_circuit_breaker("cloud_backup", fail_max=5, timeout_duration=30)
    await call_with_resilience(breaker, RetryPolicy(attempts=3), store.write, key, payload)
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, TypeVar

import aiobreaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from notesync.backend.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_STATE_EVENTS = {
    "open": "circuit_breaker_opened",
    "half-open": "circuit_breaker_half_open",
    "closed": "circuit_breaker_closed",
}


def _state_label(state: Any) -> str:
    """'open', 'half-open' or 'closed' for aiobreaker state enums, objects and strings."""
    label = str(getattr(state, "name", state)).lower()
    return label.rsplit(".", 1)[-1].replace("_", "-")


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Breaker listener that logs transitions and recorded failures."""

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        previous = _state_label(old_state)
        current = _state_label(new_state)
        log = logger.error if current == "open" else logger.info
        log(
            f"Circuit breaker {self.dependency}: {previous} -> {current}",
            extra={
                "resilience_event": _STATE_EVENTS.get(current, f"circuit_breaker_{current}"),
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
            },
        )

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Circuit breaker {self.dependency}: failure recorded",
            extra={
                "resilience_event": "circuit_breaker_failure",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
                "error": str(exception),
            },
        )


def log_retry(retry_state: Any) -> None:
    """tenacity before_sleep hook: one warning per retried attempt."""
    duration_ms = None
    if retry_state.outcome_timestamp and retry_state.start_time:
        duration_ms = round((retry_state.outcome_timestamp - retry_state.start_time) * 1000)

    error = None
    if retry_state.outcome and retry_state.outcome.failed:
        error = str(retry_state.outcome.exception())

    operation = getattr(retry_state.fn, "__name__", "unknown")
    logger.warning(
        f"Retrying {operation} (attempt {retry_state.attempt_number})",
        extra={
            "resilience_event": "retry_attempt",
            "dependency": operation,
            "attempt": retry_state.attempt_number,
            "duration_ms": duration_ms,
            "error": error,
        },
    )


def create_circuit_breaker(
    dependency: str,
    fail_max: int = 5,
    timeout_duration: int = 30,
) -> aiobreaker.CircuitBreaker:
    """
    Circuit breaker that logs through ResilienceLogger.

    Args:
        dependency: Name used in log events
        fail_max: Consecutive failures before the circuit opens
        timeout_duration: Seconds the circuit stays open before a trial call
    """
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=timeout_duration),
        listeners=[ResilienceLogger(dependency)],
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff for transient failures.

    attempts counts the first call, so attempts=1 disables retry.
    """

    attempts: int = 3
    backoff_multiplier: float = 0.5
    backoff_max: float = 4
    retry_on: tuple[type[BaseException], ...] = (OSError,)


async def call_with_resilience(
    breaker: aiobreaker.CircuitBreaker,
    policy: RetryPolicy,
    operation: Callable[..., Awaitable[T]],
    *args: Any,
) -> T:
    """
    Run operation(*args) behind the breaker, retrying per policy.

    Raises:
        aiobreaker.CircuitBreakerError: The circuit is open
        Exception: The last error once retries are exhausted
    """

    async def _attempts() -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            wait=wait_exponential(multiplier=policy.backoff_multiplier, max=policy.backoff_max),
            retry=retry_if_exception_type(policy.retry_on),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                return await operation(*args)

    return await breaker.call_async(_attempts)
