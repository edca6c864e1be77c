"""Sync run tracker — single-flight lifecycle of per-category sync runs.

At most one run per category may be pending or running. The guarantee is
enforced twice: an asyncio lock per category serializes check-and-create
within the process, and a partial unique index rejects a second active row
at the database level (other processes, other workers).
"""

import asyncio
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from election_sync.models.sync_run import ACTIVE_STATUSES, TERMINAL_STATUSES, SyncRun, SyncRunStatus


class SyncInProgressError(Exception):
    """Raised when a category already has an active sync run."""

    def __init__(self, category: str, run_id: uuid.UUID | None = None) -> None:
        self.category = category
        self.run_id = run_id
        detail = f" (run {run_id})" if run_id else ""
        super().__init__(f"Sync already in progress for {category}{detail}")


class InvalidSyncTransitionError(Exception):
    """Raised when a run is moved out of a terminal state or cannot be found."""


@dataclass(frozen=True)
class SyncRunHandle:
    """Reference to a run started by ``SyncRunTracker.begin``."""

    run_id: uuid.UUID
    category: str
    started_at: datetime


def _as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _elapsed_ms(started_at: datetime, ended_at: datetime) -> int:
    return max(0, int((ended_at - _as_utc(started_at)).total_seconds() * 1000))


class SyncRunTracker:
    """Records sync runs and guards the one-active-run-per-category invariant.

    Args:
        session_factory: Factory for short-lived sessions; every tracker
            operation runs in its own transaction.
        stale_after: Active runs older than this are considered abandoned
            and failed by the next ``begin`` for their category.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        stale_after: timedelta = timedelta(minutes=60),
    ) -> None:
        self._session_factory = session_factory
        self._stale_after = stale_after
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def begin(self, category: str, trigger: str = "manual") -> SyncRunHandle:
        """Start a run for ``category``.

        The run is created ``pending`` and moved to ``running`` once the
        category is known to be free.

        Args:
            category: Category being synchronized.
            trigger: What started the run (e.g. "manual", "api", "cli").

        Returns:
            Handle identifying the running run.

        Raises:
            SyncInProgressError: If another run for the category is active.
        """
        async with self._locks[category]:
            async with self._session_factory() as session:
                now = datetime.now(UTC)
                await self._fail_abandoned(session, category, now)

                existing = await self._active(session, category)
                if existing is not None:
                    logger.info("Sync for {} skipped: run {} is {}", category, existing.id, existing.status)
                    raise SyncInProgressError(category, existing.id)

                run = SyncRun(category=category, status=SyncRunStatus.PENDING, trigger=trigger, started_at=now)
                session.add(run)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    logger.info("Sync for {} skipped: active run created concurrently", category)
                    raise SyncInProgressError(category) from exc

                run.status = SyncRunStatus.RUNNING
                await session.commit()

                logger.info("Sync run {} started for {} (trigger={})", run.id, category, trigger)
                return SyncRunHandle(run_id=run.id, category=category, started_at=now)

    async def complete(
        self,
        handle: SyncRunHandle,
        provider_name: str,
        created_count: int,
        updated_count: int,
    ) -> SyncRun:
        """Mark a run completed with its winning provider and record counts.

        Raises:
            InvalidSyncTransitionError: If the run is already terminal or missing.
        """
        async with self._session_factory() as session:
            run = await self._load_active(session, handle.run_id)
            now = datetime.now(UTC)
            run.status = SyncRunStatus.COMPLETED
            run.provider = provider_name
            run.created_count = created_count
            run.updated_count = updated_count
            run.completed_at = now
            run.duration_ms = _elapsed_ms(handle.started_at, now)
            await session.commit()

        logger.info(
            "Sync run {} for {} completed via {}: {} created, {} updated in {}ms",
            run.id,
            run.category,
            provider_name,
            created_count,
            updated_count,
            run.duration_ms,
        )
        return run

    async def fail(
        self,
        handle: SyncRunHandle,
        error_message: str,
        provider_name: str | None = None,
    ) -> SyncRun:
        """Mark a run failed with an error message.

        Raises:
            InvalidSyncTransitionError: If the run is already terminal or missing.
        """
        async with self._session_factory() as session:
            run = await self._load_active(session, handle.run_id)
            now = datetime.now(UTC)
            run.status = SyncRunStatus.FAILED
            run.provider = provider_name
            run.error_message = error_message
            run.completed_at = now
            run.duration_ms = _elapsed_ms(handle.started_at, now)
            await session.commit()

        logger.warning("Sync run {} for {} failed: {}", run.id, run.category, error_message)
        return run

    async def last_completed(self, category: str, provider: str | None = None) -> SyncRun | None:
        """Return the most recent completed run for a category, optionally for one provider."""
        query = select(SyncRun).where(SyncRun.category == category, SyncRun.status == SyncRunStatus.COMPLETED)
        if provider is not None:
            query = query.where(SyncRun.provider == provider)
        query = query.order_by(SyncRun.completed_at.desc()).limit(1)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def get_run(self, run_id: uuid.UUID) -> SyncRun | None:
        async with self._session_factory() as session:
            return await session.get(SyncRun, run_id)

    async def active_run(self, category: str) -> SyncRun | None:
        async with self._session_factory() as session:
            return await self._active(session, category)

    async def list_runs(
        self,
        *,
        category: str | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[SyncRun], int]:
        """List runs newest first with optional filters.

        Args:
            category: Filter by category.
            status: Filter by status.
            page: Page number.
            page_size: Items per page.

        Returns:
            Tuple of (runs, total count).
        """
        query = select(SyncRun)
        count_query = select(func.count(SyncRun.id))
        if category:
            query = query.where(SyncRun.category == category)
            count_query = count_query.where(SyncRun.category == category)
        if status:
            query = query.where(SyncRun.status == status)
            count_query = count_query.where(SyncRun.status == status)

        offset = (page - 1) * page_size
        query = query.order_by(SyncRun.started_at.desc()).offset(offset).limit(page_size)
        async with self._session_factory() as session:
            total = (await session.execute(count_query)).scalar_one()
            result = await session.execute(query)
            runs = list(result.scalars().all())
        return runs, total

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _active(self, session: AsyncSession, category: str) -> SyncRun | None:
        result = await session.execute(
            select(SyncRun)
            .where(SyncRun.category == category, SyncRun.status.in_([s.value for s in ACTIVE_STATUSES]))
            .order_by(SyncRun.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _load_active(self, session: AsyncSession, run_id: uuid.UUID) -> SyncRun:
        run = await session.get(SyncRun, run_id)
        if run is None:
            msg = f"Sync run {run_id} not found"
            raise InvalidSyncTransitionError(msg)
        if run.status in TERMINAL_STATUSES:
            msg = f"Sync run {run_id} is already {run.status}"
            raise InvalidSyncTransitionError(msg)
        return run

    async def _fail_abandoned(self, session: AsyncSession, category: str, now: datetime) -> None:
        """Fail active runs for ``category`` that have outlived ``stale_after``."""
        result = await session.execute(
            select(SyncRun).where(
                SyncRun.category == category,
                SyncRun.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        )
        abandoned = [run for run in result.scalars().all() if now - _as_utc(run.started_at) > self._stale_after]
        if not abandoned:
            return
        for run in abandoned:
            logger.warning("Failing abandoned sync run {} for {} (started {})", run.id, category, run.started_at)
            run.status = SyncRunStatus.FAILED
            run.error_message = f"Abandoned: no completion within {self._stale_after}"
            run.completed_at = now
            run.duration_ms = _elapsed_ms(run.started_at, now)
        await session.commit()
