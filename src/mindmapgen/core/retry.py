"""Capped exponential-backoff retry for a single unit of async work."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from mindmapgen.errors import ValidationError
from mindmapgen.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_transient_error(error: BaseException) -> bool:
    """Default retry predicate.

    Structural failures of the generated document come back identical for identical input,
    so they are never retried. Communication failures, timeouts and unknown errors are.
    """

    return not isinstance(error, ValidationError)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration. Timeouts are in seconds."""

    retries: int = 3
    factor: float = 2.0
    min_timeout: float = 1.0
    max_timeout: float = 10.0
    should_retry: Callable[[BaseException], bool] = field(default=is_transient_error)
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be a non-negative integer")
        if self.min_timeout < 0 or self.max_timeout < 0:
            raise ValueError("retry timeouts must be non-negative")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


@dataclass(frozen=True)
class FailedAttempt:
    """Payload handed to the `on_failed_attempt` observer."""

    attempt_number: int
    retries_left: int
    message: str
    error: BaseException


def backoff_delay(policy: RetryPolicy, attempt_number: int) -> float:
    """Delay to wait after the given failed attempt (1-based)."""

    delay = min(policy.max_timeout, policy.min_timeout * policy.factor ** (attempt_number - 1))
    if policy.jitter:
        delay = random.uniform(delay / 2, delay)
    return delay


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    on_failed_attempt: Callable[[FailedAttempt], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `operation` until it succeeds, is deemed non-retryable, or attempts run out.

    Attempts are strictly sequential. The error of the last attempt propagates unchanged.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Retry policy. Defaults to `RetryPolicy()`.
        on_failed_attempt: Synchronous observer called after every failed attempt.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The operation's result.
    """

    policy = policy or RetryPolicy()
    attempt_number = 0
    while True:
        attempt_number += 1
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as error:  # noqa: BLE001
            retries_left = policy.max_attempts - attempt_number
            if on_failed_attempt is not None:
                on_failed_attempt(
                    FailedAttempt(
                        attempt_number=attempt_number,
                        retries_left=retries_left,
                        message=str(error),
                        error=error,
                    )
                )

            if retries_left <= 0 or not policy.should_retry(error):
                if retries_left > 0:
                    logger.debug(
                        "Retry suppressed for non-transient error",
                        extra={"attempt": attempt_number, "error_type": type(error).__name__},
                    )
                raise

            delay = backoff_delay(policy, attempt_number)
            logger.debug(
                "Retrying after backoff",
                extra={"attempt": attempt_number, "retries_left": retries_left, "sleep_s": delay},
            )
            await sleep(delay)
