"""Unit tests for middleware components."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from provisioning.api.middleware.correlation import (
    CORRELATION_HEADER,
    correlation_id_ctx,
    CorrelationIdMiddleware,
    get_correlation_id,
)
from provisioning.api.middleware.rate_limiter import RateLimiterMiddleware
from provisioning.config import RateLimitSettings


def _app(rate_limit: RateLimitSettings | None = None) -> FastAPI:
    app = FastAPI()
    if rate_limit is not None:
        app.add_middleware(RateLimiterMiddleware, settings=rate_limit)
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/echo")
    async def echo() -> dict[str, str]:
        return {"correlation_id": get_correlation_id()}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


class TestCorrelationId:
    def test_default_empty(self) -> None:
        token = correlation_id_ctx.set("")
        assert get_correlation_id() == ""
        correlation_id_ctx.reset(token)

    def test_set_and_get(self) -> None:
        token = correlation_id_ctx.set("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"
        correlation_id_ctx.reset(token)

    def test_propagates_caller_header(self) -> None:
        client = TestClient(_app())
        response = client.get("/echo", headers={CORRELATION_HEADER: "abc-123"})
        assert response.json() == {"correlation_id": "abc-123"}
        assert response.headers[CORRELATION_HEADER] == "abc-123"

    def test_mints_id_when_missing(self) -> None:
        client = TestClient(_app())
        response = client.get("/echo")
        minted = response.headers[CORRELATION_HEADER]
        assert minted
        assert response.json()["correlation_id"] == minted

    def test_context_is_reset_after_request(self) -> None:
        TestClient(_app()).get("/echo", headers={CORRELATION_HEADER: "abc-123"})
        assert get_correlation_id() == ""


class TestRateLimiter:
    def test_allows_burst_then_limits(self) -> None:
        client = TestClient(_app(RateLimitSettings(requests_per_minute=1, burst_size=2)))
        assert client.get("/echo").status_code == 200
        assert client.get("/echo").status_code == 200

        limited = client.get("/echo")
        assert limited.status_code == 429
        assert int(limited.headers["Retry-After"]) >= 1

    def test_health_is_exempt(self) -> None:
        client = TestClient(_app(RateLimitSettings(requests_per_minute=1, burst_size=1)))
        for _ in range(5):
            assert client.get("/health").status_code == 200

    def test_generous_limit(self) -> None:
        client = TestClient(_app(RateLimitSettings(requests_per_minute=6000, burst_size=100)))
        assert all(client.get("/echo").status_code == 200 for _ in range(20))
