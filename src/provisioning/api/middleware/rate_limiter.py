"""Rate limiting middleware."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from provisioning.config import RateLimitSettings


logger = structlog.get_logger(__name__)

EXEMPT_PREFIXES = ("/health", "/metrics")


@dataclass
class _Bucket:
    tokens: float
    last_refill: float


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """Token bucket rate limiter, one bucket per client address.

    Probes and the metrics scrape are never limited.
    """

    def __init__(self, app: ASGIApp, settings: RateLimitSettings | None = None) -> None:
        super().__init__(app)
        self._settings = settings or RateLimitSettings()
        self._refill_per_second = self._settings.requests_per_minute / 60.0
        self._buckets: dict[str, _Bucket] = {}

    def _take(self, client: str, now: float) -> float:
        """Consume a token. Returns 0 on success, else seconds until one is available."""
        capacity = float(self._settings.burst_size)
        bucket = self._buckets.setdefault(client, _Bucket(tokens=capacity, last_refill=now))
        bucket.tokens = min(capacity, bucket.tokens + (now - bucket.last_refill) * self._refill_per_second)
        bucket.last_refill = now
        if bucket.tokens >= 1.0:
            bucket.tokens -= 1.0
            return 0.0
        return (1.0 - bucket.tokens) / self._refill_per_second

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        wait = self._take(client, time.monotonic())
        if wait > 0:
            logger.warning("rate_limited", client=client, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Please retry later."},
                headers={"Retry-After": str(max(1, math.ceil(wait)))},
            )
        return await call_next(request)
