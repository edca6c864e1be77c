"""Sync API endpoints.

POST /sync — sync one category
POST /sync/full — sync every configured category
GET /sync/status — per-category freshness
GET /sync/providers — configured providers in fallback order
GET /sync/runs — list sync runs
GET /sync/runs/{run_id} — sync run detail
"""

import math
import uuid
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from loguru import logger

from election_sync.core.config import Settings, get_settings
from election_sync.core.dependencies import get_orchestrator
from election_sync.lib.providers import AggregatedProviderError, parse_category
from election_sync.schemas.common import ErrorResponse, PaginationMeta
from election_sync.schemas.sync import (
    CategoryStatusResponse,
    FullSyncResponse,
    PaginatedSyncRunResponse,
    ProviderListResponse,
    SyncReportResponse,
    SyncRunSummary,
    SyncStatusResponse,
    SyncTriggerRequest,
    SyncTriggerResponse,
)
from election_sync.services.record_service import PersistenceError
from election_sync.services.sync_orchestrator import DataOrchestrator
from election_sync.services.sync_run_service import SyncInProgressError

sync_router = APIRouter(prefix="/sync", tags=["sync"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@sync_router.post(
    "",
    response_model=SyncTriggerResponse,
    responses={
        409: {"model": ErrorResponse, "description": "Sync already in progress"},
        422: {"model": ErrorResponse, "description": "Unknown category"},
        500: {"model": ErrorResponse, "description": "Records could not be stored"},
        502: {"model": ErrorResponse, "description": "No provider produced data"},
    },
)
async def trigger_sync(
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
    body: SyncTriggerRequest | None = None,
) -> SyncTriggerResponse | JSONResponse:
    """Sync one category and report what changed."""
    request = body or SyncTriggerRequest()
    try:
        category = parse_category(request.sync_type)
    except ValueError as exc:
        return _error(422, str(exc))

    try:
        report = await orchestrator.sync_category(category, trigger="api")
    except SyncInProgressError as exc:
        return _error(409, str(exc))
    except AggregatedProviderError as exc:
        return _error(502, str(exc))
    except PersistenceError as exc:
        return _error(500, str(exc))
    except Exception as exc:
        logger.exception("Sync of {} failed", category)
        return _error(500, str(exc))

    return SyncTriggerResponse(
        created=report.created,
        updated=report.updated,
        duration_ms=report.duration_ms,
        provider=report.provider,
        sync_run_id=report.sync_run_id,
    )


@sync_router.post("/full", response_model=FullSyncResponse)
async def trigger_full_sync(
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
) -> FullSyncResponse:
    """Sync every configured category; failures are reported per category."""
    reports = await orchestrator.perform_full_sync(trigger="api")
    return FullSyncResponse(reports=[SyncReportResponse.model_validate(r) for r in reports])


@sync_router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SyncStatusResponse:
    """Report last completed sync and staleness for every category."""
    statuses = await orchestrator.status_overview(timedelta(hours=settings.sync_staleness_hours))
    return SyncStatusResponse(
        staleness_hours=settings.sync_staleness_hours,
        categories=[CategoryStatusResponse.model_validate(s) for s in statuses],
    )


@sync_router.get("/providers", response_model=ProviderListResponse)
async def list_providers(
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
) -> ProviderListResponse:
    """List configured providers in fallback order."""
    return ProviderListResponse(providers=orchestrator.switcher.get_available_providers())


@sync_router.get("/runs", response_model=PaginatedSyncRunResponse)
async def list_sync_runs(
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
    category: str | None = Query(default=None, description="Filter by category (aliases accepted)"),
    status: str | None = Query(default=None, description="Filter by status"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Results per page"),
) -> PaginatedSyncRunResponse | JSONResponse:
    """List sync runs, newest first."""
    if category is not None:
        try:
            category = parse_category(category)
        except ValueError as exc:
            return _error(422, str(exc))

    runs, total = await orchestrator.tracker.list_runs(
        category=category, status=status, page=page, page_size=page_size
    )
    return PaginatedSyncRunResponse(
        items=[SyncRunSummary.model_validate(r) for r in runs],
        pagination=PaginationMeta(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=max(1, math.ceil(total / page_size)) if total > 0 else 0,
        ),
    )


@sync_router.get("/runs/{run_id}", response_model=SyncRunSummary)
async def get_sync_run(
    run_id: uuid.UUID,
    orchestrator: Annotated[DataOrchestrator, Depends(get_orchestrator)],
) -> SyncRunSummary:
    """Get a single sync run."""
    run = await orchestrator.tracker.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Sync run not found")
    return SyncRunSummary.model_validate(run)
