"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from election_sync.core.config import get_settings
from election_sync.core.database import dispose_engine, get_session_factory, init_engine_from_settings
from election_sync.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: wire the orchestrator on startup, release it on shutdown."""
    from election_sync.services.sync_orchestrator import build_orchestrator

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine_from_settings(settings)
    app.state.orchestrator = build_orchestrator(settings, get_session_factory())

    yield

    await app.state.orchestrator.aclose()
    app.state.orchestrator = None
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Election Sync",
        description="Multi-source election data ingestion with ordered provider fallback",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Register exception handlers
    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": str(exc)},
        )

    # Register middleware and routers
    from election_sync.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
