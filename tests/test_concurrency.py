"""Tests for concurrency helpers."""

from __future__ import annotations

import asyncio

import pytest

from mindmapgen.core.concurrency import ConcurrencyLimiter, gather_limited, with_timeout
from mindmapgen.errors import OperationTimeoutError


def test_limiter_rejects_zero() -> None:
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


def test_gather_limited_preserves_order_and_bound() -> None:
    """Results follow factory order and at most max_concurrent run together."""
    in_flight = 0
    peak = 0

    def factory(i: int):
        async def run() -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001 * (10 - i))
            in_flight -= 1
            return i * i

        return run

    async def main() -> list[int]:
        return await gather_limited([factory(i) for i in range(10)], limiter=ConcurrencyLimiter(3))

    assert asyncio.run(main()) == [i * i for i in range(10)]
    assert peak == 3


def test_gather_limited_empty() -> None:
    async def main() -> list[int]:
        return await gather_limited([], limiter=ConcurrencyLimiter(2))

    assert asyncio.run(main()) == []


def test_limiter_slot_accounting() -> None:
    """running/available track acquire and release."""

    async def main() -> tuple[int, int, int]:
        limiter = ConcurrencyLimiter(2)
        async with limiter:
            inside = (limiter.running, limiter.available)
        return inside[0], inside[1], limiter.running

    assert asyncio.run(main()) == (1, 1, 0)


def test_with_timeout_raises_operation_timeout() -> None:
    async def main() -> None:
        await with_timeout(asyncio.sleep(1), 0.01, operation="slow call")

    with pytest.raises(OperationTimeoutError) as exc_info:
        asyncio.run(main())

    assert exc_info.value.status_code == 408
    assert "slow call" in exc_info.value.message


def test_with_timeout_none_waits() -> None:
    async def main() -> str:
        async def value() -> str:
            return "done"

        return await with_timeout(value(), None, operation="fast")

    assert asyncio.run(main()) == "done"
