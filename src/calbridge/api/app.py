"""Bridge API — FastAPI application factory.

The app factory creates a FastAPI instance with:
- Lifespan handler owning the shared ``httpx.AsyncClient`` and orchestrator
- Health endpoint at GET /health
- Sync routes (POST /create-event, POST|PUT /update-alchemy)
- Domain error handlers rendering the standard error envelope
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from calbridge.api.middleware import register_error_handlers
from calbridge.api.models import HealthResponse
from calbridge.api.routers.sync import router as sync_router
from calbridge.config import BridgeConfig, load_config
from calbridge.sync import SyncOrchestrator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the HTTP client and orchestrator unless one was injected."""
    if getattr(app.state, "orchestrator", None) is not None:
        yield
        return

    config: BridgeConfig = app.state.config or load_config()
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(config.request_timeout_seconds))
    app.state.orchestrator = SyncOrchestrator.from_config(config, http_client)
    logger.info(
        "Bridge ready (registry=%s, calendar=%s, timeout=%.1fs)",
        config.registry_base_url,
        config.calendar_id,
        config.request_timeout_seconds,
    )
    try:
        yield
    finally:
        app.state.orchestrator = None
        await http_client.aclose()


def create_app(
    config: BridgeConfig | None = None,
    orchestrator: SyncOrchestrator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Bridge configuration. Falls back to ``load_config()`` at startup
        when neither this nor *orchestrator* is given.
    orchestrator:
        Pre-built orchestrator (tests); skips client construction.
    """
    app = FastAPI(
        title="Calendar Registry Bridge",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config
    app.state.orchestrator = orchestrator

    register_error_handlers(app)
    app.include_router(sync_router)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    return app
