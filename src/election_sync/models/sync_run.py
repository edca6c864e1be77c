"""SyncRun model — one synchronization attempt for one data category.

State machine::

    pending -> running -> completed
                       -> failed

completed and failed are terminal; a new sync is always a new row.  At most
one row per category may be pending or running, enforced by a partial
unique index in addition to the tracker's per-category lock.
"""

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from election_sync.models.base import Base, UUIDMixin


class SyncRunStatus(enum.StrEnum):
    """Lifecycle status of a sync run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES: frozenset[SyncRunStatus] = frozenset({SyncRunStatus.PENDING, SyncRunStatus.RUNNING})
TERMINAL_STATUSES: frozenset[SyncRunStatus] = frozenset({SyncRunStatus.COMPLETED, SyncRunStatus.FAILED})

_ACTIVE_PREDICATE = text("status IN ('pending', 'running')")


class SyncRun(Base, UUIDMixin):
    """Tracks a single category synchronization attempt."""

    __tablename__ = "sync_runs"

    category: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    # Winning provider, filled once known
    provider: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SyncRunStatus.PENDING.value, server_default="pending"
    )
    trigger: Mapped[str] = mapped_column(String(20), nullable=False, default="manual", server_default="manual")

    # Record counts
    created_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_sync_run_status",
        ),
        Index(
            "uq_sync_runs_active_category",
            "category",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("idx_sync_runs_category_status_completed", "category", "status", "completed_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
