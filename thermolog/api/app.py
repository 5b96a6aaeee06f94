"""FastAPI application entry point for Thermolog."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from thermolog.api.routes import router
from thermolog.config.settings import ThermologConfig
from thermolog.fallback.orchestrator import FallbackOrchestrator

logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    config: ThermologConfig = app.state.config
    logging.basicConfig(level=config.log_level.upper())
    logger.info(
        "thermolog_started",
        extra={"default_level": config.fallback.default_level.value},
    )
    yield


def create_app(config: ThermologConfig | None = None) -> FastAPI:
    """Factory function for creating the FastAPI application.

    The config and the orchestrator built from it live on ``app.state``;
    routes read both from there.
    """
    config = config or ThermologConfig()

    app = FastAPI(
        title="Thermolog",
        description="Hourly reading extraction from thermal oxidizer log OCR",
        version=SERVICE_VERSION,
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.orchestrator = FallbackOrchestrator(config)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "thermolog", "version": SERVICE_VERSION}

    return app


app = create_app()
