"""Pydantic v2 schemas for sync endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from election_sync.schemas.common import PaginationMeta

# --- Request schemas ---


class SyncTriggerRequest(BaseModel):
    """Request body for triggering a single-category sync."""

    sync_type: str = Field(
        default="elections",
        description="Category to sync: timetables, candidates, results (aliases: elections, results_links)",
    )


# --- Response schemas ---


class SyncTriggerResponse(BaseModel):
    """Outcome of a successful single-category sync."""

    created: int
    updated: int
    duration_ms: int | None
    provider: str | None
    sync_run_id: uuid.UUID | None


class SyncReportResponse(BaseModel):
    """One category's report within a full sync."""

    model_config = {"from_attributes": True}

    category: str
    status: str
    provider: str | None = None
    created: int = 0
    updated: int = 0
    duration_ms: int | None = None
    error: str | None = None
    sync_run_id: uuid.UUID | None = None


class FullSyncResponse(BaseModel):
    """Reports for every category of a full sync, in category order."""

    reports: list[SyncReportResponse]


class SyncRunSummary(BaseModel):
    """A persisted sync run."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    category: str
    provider: str | None
    status: str
    trigger: str
    created_count: int | None
    updated_count: int | None
    started_at: datetime
    completed_at: datetime | None
    duration_ms: int | None
    error_message: str | None


class PaginatedSyncRunResponse(BaseModel):
    """Paginated list of sync runs."""

    items: list[SyncRunSummary]
    pagination: PaginationMeta


class CategoryStatusResponse(BaseModel):
    """Freshness of one category."""

    model_config = {"from_attributes": True}

    category: str
    last_completed_at: datetime | None
    provider: str | None
    is_stale: bool
    active_run_id: uuid.UUID | None


class SyncStatusResponse(BaseModel):
    """Freshness of every configured category."""

    staleness_hours: int
    categories: list[CategoryStatusResponse]


class ProviderListResponse(BaseModel):
    """Configured providers in fallback order."""

    providers: list[str]
