"""Root API router with the versioned prefix and middleware registration."""

from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from election_sync.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from election_sync.api.v1.sync import sync_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(sync_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register CORS middleware when origins are configured.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    if not settings.cors_origin_list:
        return
    kwargs: dict[str, Any] = {
        "allow_origins": settings.cors_origin_list,
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["*"],
    }
    app.add_middleware(CORSMiddleware, **kwargs)
