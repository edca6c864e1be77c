"""Data orchestrator — drives category syncs through switcher, store and tracker.

A full sync runs every configured category and isolates failures: one
category failing never prevents the others from running, and the caller
always receives one report per category in category order. A single
category sync raises its failure instead.
"""

import asyncio
import enum
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from election_sync.core.config import Settings
from election_sync.lib.precedence import PrecedencePolicy
from election_sync.lib.providers import (
    AggregatedProviderError,
    Category,
    ProviderSwitcher,
    get_configured_providers,
    parse_category,
)
from election_sync.models.sync_run import SyncRun, SyncRunStatus
from election_sync.services.record_service import PersistenceError, RecordStore, RecordUpserter
from election_sync.services.sync_run_service import (
    InvalidSyncTransitionError,
    SyncInProgressError,
    SyncRunHandle,
    SyncRunTracker,
)

CANCELLED_MESSAGE = "Sync cancelled"


class ReportStatus(enum.StrEnum):
    """Outcome of one category within a sync."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SyncReport:
    """Immutable terminal snapshot of one category sync."""

    category: str
    status: ReportStatus
    provider: str | None = None
    created: int = 0
    updated: int = 0
    duration_ms: int | None = None
    error: str | None = None
    sync_run_id: uuid.UUID | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_run(cls, run: SyncRun) -> "SyncReport":
        status = ReportStatus.COMPLETED if run.status == SyncRunStatus.COMPLETED else ReportStatus.FAILED
        return cls(
            category=run.category,
            status=status,
            provider=run.provider,
            created=run.created_count or 0,
            updated=run.updated_count or 0,
            duration_ms=run.duration_ms,
            error=run.error_message,
            sync_run_id=run.id,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )

    @classmethod
    def skipped(cls, category: str, reason: str, run_id: uuid.UUID | None = None) -> "SyncReport":
        return cls(category=category, status=ReportStatus.SKIPPED, error=reason, sync_run_id=run_id)

    @classmethod
    def failed(cls, category: str, error: str) -> "SyncReport":
        return cls(category=category, status=ReportStatus.FAILED, error=error)


@dataclass(frozen=True)
class CategoryStatus:
    """Read-only freshness view of one category."""

    category: str
    last_completed_at: datetime | None
    provider: str | None
    is_stale: bool
    active_run_id: uuid.UUID | None


class DataOrchestrator:
    """Runs category syncs.

    Args:
        switcher: Ordered provider fallback.
        tracker: Sync run lifecycle and single-flight guard.
        store: Persistence collaborator for resolved payloads.
        categories: Categories of a full sync, in report order.
        concurrent: Run full-sync categories concurrently instead of in order.
    """

    def __init__(
        self,
        switcher: ProviderSwitcher,
        tracker: SyncRunTracker,
        store: RecordUpserter,
        *,
        categories: Sequence[Category] = tuple(Category),
        concurrent: bool = False,
    ) -> None:
        self.switcher = switcher
        self.tracker = tracker
        self.store = store
        self.categories = list(dict.fromkeys(categories))
        self.concurrent = concurrent

    async def sync_category(self, category: Category, trigger: str = "manual") -> SyncReport:
        """Sync one category.

        Args:
            category: Category to sync.
            trigger: What started the sync.

        Returns:
            The completed report.

        Raises:
            SyncInProgressError: If the category already has an active run.
            AggregatedProviderError: If no provider produced data.
            PersistenceError: If the resolved payload could not be stored.
        """
        report, error = await self._execute(category, trigger, {})
        if error is not None:
            raise error
        return report

    async def perform_full_sync(
        self,
        cancel_event: asyncio.Event | None = None,
        trigger: str = "manual",
    ) -> list[SyncReport]:
        """Sync every configured category, isolating failures.

        Args:
            cancel_event: When set, the in-flight category is abandoned and
                failed, and categories not yet started are skipped.
            trigger: What started the sync.

        Returns:
            One report per category, in category order.
        """
        logger.info(
            "Full sync started for {} ({})",
            ", ".join(self.categories),
            "concurrent" if self.concurrent else "sequential",
        )
        if self.concurrent:
            reports = list(
                await asyncio.gather(*(self._run_cancellable(c, trigger, cancel_event) for c in self.categories))
            )
        else:
            reports = [await self._run_cancellable(c, trigger, cancel_event) for c in self.categories]

        counts = {status: sum(1 for r in reports if r.status == status) for status in ReportStatus}
        logger.info(
            "Full sync finished: {} completed, {} failed, {} skipped",
            counts[ReportStatus.COMPLETED],
            counts[ReportStatus.FAILED],
            counts[ReportStatus.SKIPPED],
        )
        logger.bind(
            json_output=True,
            trigger=trigger,
            reports=[
                {"category": r.category, "status": r.status, "provider": r.provider, "error": r.error} for r in reports
            ],
        ).info("full_sync_report")
        return reports

    async def status_overview(self, stale_after: timedelta) -> list[CategoryStatus]:
        """Return freshness of every configured category.

        A category is stale when it has never completed or its last
        completed run finished more than ``stale_after`` ago.
        """
        now = datetime.now(UTC)
        statuses: list[CategoryStatus] = []
        for category in self.categories:
            last = await self.tracker.last_completed(category)
            active = await self.tracker.active_run(category)
            completed_at = last.completed_at if last is not None else None
            if completed_at is not None and completed_at.tzinfo is None:
                completed_at = completed_at.replace(tzinfo=UTC)
            statuses.append(
                CategoryStatus(
                    category=category,
                    last_completed_at=completed_at,
                    provider=last.provider if last is not None else None,
                    is_stale=completed_at is None or now - completed_at > stale_after,
                    active_run_id=active.id if active is not None else None,
                )
            )
        return statuses

    async def aclose(self) -> None:
        """Release provider resources."""
        for provider in self.switcher.providers:
            await provider.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _execute(
        self,
        category: Category,
        trigger: str,
        starts: dict[Category, asyncio.Future[SyncRunHandle]],
    ) -> tuple[SyncReport, Exception | None]:
        """Run one category and return its report plus the failure, if any."""
        # begin runs to completion even when this task is cancelled
        start = asyncio.ensure_future(self.tracker.begin(category, trigger))
        starts[category] = start
        try:
            handle = await asyncio.shield(start)
        except SyncInProgressError as exc:
            return SyncReport.skipped(category, str(exc), run_id=exc.run_id), exc

        provider_name: str | None = None
        try:
            result = await self.switcher.resolve(category)
            provider_name = result.provider_name
            counts = await self.store.upsert(category, result, sync_run_id=handle.run_id)
        except (AggregatedProviderError, PersistenceError) as exc:
            run = await self.tracker.fail(handle, str(exc), provider_name=provider_name)
            return SyncReport.from_run(run), exc
        except Exception as exc:
            logger.exception("Unexpected error while syncing {}", category)
            run = await self.tracker.fail(handle, f"Unexpected error: {exc}", provider_name=provider_name)
            return SyncReport.from_run(run), exc

        run = await self.tracker.complete(handle, result.provider_name, counts.created, counts.updated)
        return SyncReport.from_run(run), None

    async def _isolated(
        self,
        category: Category,
        trigger: str,
        starts: dict[Category, asyncio.Future[SyncRunHandle]],
    ) -> SyncReport:
        try:
            report, _ = await self._execute(category, trigger, starts)
        except Exception as exc:
            # Tracker itself failed; the run cannot be recorded
            logger.exception("Sync of {} failed outside run tracking", category)
            return SyncReport.failed(category, str(exc))
        return report

    async def _run_cancellable(
        self,
        category: Category,
        trigger: str,
        cancel_event: asyncio.Event | None,
    ) -> SyncReport:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Skipping {}: sync cancelled", category)
            return SyncReport.skipped(category, CANCELLED_MESSAGE)

        starts: dict[Category, asyncio.Future[SyncRunHandle]] = {}
        task = asyncio.create_task(self._isolated(category, trigger, starts))
        if cancel_event is None:
            return await task

        waiter = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()
        if task in done:
            return task.result()

        logger.warning("Cancelling in-flight sync of {}", category)
        task.cancel()
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        return await self._mark_cancelled(category, starts.get(category))

    async def _mark_cancelled(
        self,
        category: Category,
        start: asyncio.Future[SyncRunHandle] | None,
    ) -> SyncReport:
        """Fail the run started for ``category``, waiting for a start still in progress."""
        if start is None:
            return SyncReport.skipped(category, CANCELLED_MESSAGE)
        try:
            handle = await start
        except SyncInProgressError as exc:
            return SyncReport.skipped(category, str(exc), run_id=exc.run_id)
        except Exception as exc:
            logger.exception("Sync of {} failed outside run tracking", category)
            return SyncReport.failed(category, str(exc))

        try:
            run = await self.tracker.fail(handle, CANCELLED_MESSAGE)
        except InvalidSyncTransitionError:
            stored = await self.tracker.get_run(handle.run_id)
            if stored is None:
                return SyncReport.failed(category, CANCELLED_MESSAGE)
            return SyncReport.from_run(stored)
        return SyncReport.from_run(run)


def build_orchestrator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    **overrides: Any,
) -> DataOrchestrator:
    """Wire an orchestrator from settings.

    Args:
        settings: Application settings.
        session_factory: Session factory for the tracker and record store.
        **overrides: Replacement collaborators (``switcher``, ``tracker``,
            ``store``) used instead of the configured ones.

    Returns:
        A ready DataOrchestrator.
    """
    switcher = overrides.get("switcher") or ProviderSwitcher(
        get_configured_providers(settings), call_timeout=settings.provider_call_timeout
    )
    tracker = overrides.get("tracker") or SyncRunTracker(
        session_factory, stale_after=timedelta(minutes=settings.sync_stale_run_minutes)
    )
    policy = PrecedencePolicy.from_mapping(settings.precedence_rules, settings.provider_fallback_order_list)
    store = overrides.get("store") or RecordStore(session_factory, policy)

    logger.info("Provider fallback order: {}", ", ".join(switcher.get_available_providers()) or "(none)")
    return DataOrchestrator(
        switcher,
        tracker,
        store,
        categories=[parse_category(c) for c in settings.sync_category_list],
        concurrent=settings.sync_concurrent_categories,
    )
