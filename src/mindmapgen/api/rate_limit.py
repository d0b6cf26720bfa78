"""Per-client sliding-window rate limiting."""

from __future__ import annotations

import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from mindmapgen.api.auth import is_public_path
from mindmapgen.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SlidingWindowRateLimiter:
    """Allows at most `max_requests` per client within any `window_s` seconds."""

    max_requests: int
    window_s: float
    clock: Callable[[], float] = time.monotonic
    _hits: dict[str, deque[float]] = field(default_factory=lambda: defaultdict(deque), init=False)

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.window_s <= 0:
            raise ValueError("window_s must be positive")

    def hit(self, client: str) -> float:
        """Record a request for `client`.

        Returns:
            0 when the request is allowed, otherwise seconds until a slot frees up.
        """

        now = self.clock()
        hits = self._hits[client]
        while hits and now - hits[0] >= self.window_s:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return self.window_s - (now - hits[0])
        hits.append(now)
        return 0.0


def install_rate_limit(app: FastAPI, limiter: SlidingWindowRateLimiter) -> None:
    """Reject requests over the limit with 429. Public paths are exempt."""

    @app.middleware("http")
    async def rate_limit_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        retry_after = limiter.hit(client)
        if retry_after > 0:
            logger.warning(
                "Rate limit exceeded",
                extra={"client": client, "path": request.url.path, "retry_after_s": round(retry_after, 1)},
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "TooManyRequests",
                    "message": f"Rate limit exceeded, retry in {retry_after:.0f} seconds",
                    "statusCode": 429,
                },
                headers={"Retry-After": str(max(1, round(retry_after)))},
            )
        return await call_next(request)
