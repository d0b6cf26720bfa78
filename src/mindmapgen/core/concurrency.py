"""Concurrency control utilities for async operations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, TypeVar

from mindmapgen.errors import OperationTimeoutError
from mindmapgen.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ConcurrencyLimiter:
    """Caps how many coroutines may be inside the limiter at once."""

    max_concurrent: int
    _semaphore: asyncio.Semaphore = field(init=False)
    _running: int = field(default=0, init=False)

    def __post_init__(self):
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    async def acquire(self) -> None:
        """Acquire a slot, waiting while all slots are taken."""
        await self._semaphore.acquire()
        self._running += 1

    def release(self) -> None:
        """Release a slot."""
        self._running -= 1
        self._semaphore.release()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()

    @property
    def running(self) -> int:
        """Get number of running tasks."""
        return self._running

    @property
    def available(self) -> int:
        """Get number of available slots."""
        return self.max_concurrent - self._running


async def gather_limited(
    factories: Iterable[Callable[[], Awaitable[T]]],
    *,
    limiter: ConcurrencyLimiter,
) -> list[T]:
    """Run coroutine factories concurrently, at most `limiter.max_concurrent` at a time.

    Results come back in the order of `factories`, whatever the completion order.

    Args:
        factories: Zero-argument coroutine factories. A coroutine is only created once its
            slot is acquired.
        limiter: Shared limiter.

    Returns:
        List of results, positionally aligned with `factories`.
    """

    async def _wrapped(factory: Callable[[], Awaitable[T]]) -> T:
        async with limiter:
            return await factory()

    tasks = [asyncio.create_task(_wrapped(factory)) for factory in factories]
    if not tasks:
        return []
    return list(await asyncio.gather(*tasks))


async def with_timeout(awaitable: Awaitable[T], timeout_s: float | None, *, operation: str) -> T:
    """Await with a hard timeout.

    Raises:
        OperationTimeoutError: The awaitable did not finish in `timeout_s` seconds.
    """

    if timeout_s is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as e:
        logger.warning("Operation timed out", extra={"operation": operation, "timeout_s": timeout_s})
        raise OperationTimeoutError(operation, timeout_s, cause=e) from e

