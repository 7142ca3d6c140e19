"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from provisioning.api.dependencies.services import ServiceContainer
from provisioning.api.middleware.correlation import CorrelationIdMiddleware
from provisioning.api.middleware.rate_limiter import RateLimiterMiddleware
from provisioning.api.middleware.request_metrics import RequestMetricsMiddleware
from provisioning.api.routes import (
    auth_routes,
    health_routes,
    provisioning_routes,
)
from provisioning.config import get_settings, Settings
from provisioning.infrastructure.observability.metrics import APP_INFO
from provisioning.infrastructure.observability.tracing import setup_tracing


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logger.info(
        "application_starting",
        environment=settings.environment.value,
        storage=settings.storage_backend.value,
        directory_simulated=settings.directory.simulated,
    )
    tracing = setup_tracing(settings.observability, environment=settings.environment.value)
    APP_INFO.info({
        "version": "1.0.0",
        "service": settings.observability.service_name,
        "environment": settings.environment.value,
    })

    container = ServiceContainer.get_instance()
    await container.startup()
    logger.info("application_started", tracing_enabled=tracing)

    yield

    logger.info("application_shutting_down")
    await container.shutdown()
    logger.info("application_shutdown_complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Identity Lifecycle Provisioning",
        description="Joiner/mover/leaver provisioning sagas with compensation and audit",
        version="1.0.0",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    # Middleware (order matters - last added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestMetricsMiddleware)
    app.add_middleware(RateLimiterMiddleware, settings=settings.rate_limit)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(health_routes.router)
    app.include_router(auth_routes.router, prefix=settings.api_prefix)
    app.include_router(provisioning_routes.router, prefix=settings.api_prefix)

    return app
