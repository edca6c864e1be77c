"""Record store — idempotent upsert of normalized records with cross-source merge.

Each logical entity keeps one contribution per source. Whenever a source's
contribution changes the entity is re-merged with the precedence policy;
an upsert that changes nothing writes nothing and counts nothing.
"""

import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from election_sync.lib.precedence import PrecedencePolicy
from election_sync.lib.providers import CategoryResult
from election_sync.lib.providers.base import record_fields
from election_sync.lib.providers.normalize import checksum
from election_sync.models.synced_record import SyncedRecord

# Keeps IN clauses well under asyncpg's 32767 parameter limit
_IN_CLAUSE_BATCH = 5000


class PersistenceError(Exception):
    """Raised when the record store cannot persist a category payload."""


@dataclass(frozen=True)
class UpsertCounts:
    """Number of entities created and updated by one upsert."""

    created: int = 0
    updated: int = 0


class RecordUpserter(Protocol):
    """Persistence collaborator used by the orchestrator."""

    async def upsert(
        self,
        category: str,
        result: CategoryResult[Any],
        *,
        sync_run_id: uuid.UUID | None = None,
    ) -> UpsertCounts: ...


class RecordStore:
    """SQLAlchemy-backed record store.

    Args:
        session_factory: Factory for the session used by each upsert.
        policy: Precedence policy used to merge source contributions.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], policy: PrecedencePolicy) -> None:
        self._session_factory = session_factory
        self._policy = policy

    async def upsert(
        self,
        category: str,
        result: CategoryResult[Any],
        *,
        sync_run_id: uuid.UUID | None = None,
    ) -> UpsertCounts:
        """Persist every record in ``result`` as the winning provider's contribution.

        Args:
            category: Category the payload belongs to.
            result: Normalized payload from the winning provider.
            sync_run_id: Run that produced the payload, stored for traceability.

        Returns:
            Counts of created and updated entities. Re-upserting identical
            records returns zero for both.

        Raises:
            PersistenceError: If the database rejects the write.
        """
        source = result.provider_name
        incoming: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        for record in result.data.iter_records():
            incoming[record.record_type][record.record_key()] = record_fields(record)

        created = 0
        updated = 0
        async with self._session_factory() as session:
            try:
                for record_type, records in incoming.items():
                    existing = await self._load_existing(session, record_type, list(records))
                    for key, fields in records.items():
                        row = existing.get(key)
                        if row is None:
                            session.add(self._new_row(category, record_type, key, source, fields, result, sync_run_id))
                            created += 1
                        elif self._apply_contribution(row, source, fields, result, sync_run_id):
                            updated += 1
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Failed to persist {} from {}: {}", category, source, exc)
                msg = f"Failed to persist {category} records: {exc}"
                raise PersistenceError(msg) from exc

        logger.info("Upserted {} from {}: {} created, {} updated", category, source, created, updated)
        return UpsertCounts(created=created, updated=updated)

    async def _load_existing(
        self,
        session: AsyncSession,
        record_type: str,
        keys: list[str],
    ) -> dict[str, SyncedRecord]:
        rows: dict[str, SyncedRecord] = {}
        for start in range(0, len(keys), _IN_CLAUSE_BATCH):
            batch = keys[start : start + _IN_CLAUSE_BATCH]
            result = await session.execute(
                select(SyncedRecord).where(SyncedRecord.record_type == record_type, SyncedRecord.record_key.in_(batch))
            )
            rows.update({row.record_key: row for row in result.scalars().all()})
        return rows

    def _new_row(
        self,
        category: str,
        record_type: str,
        key: str,
        source: str,
        fields: dict[str, Any],
        result: CategoryResult[Any],
        sync_run_id: uuid.UUID | None,
    ) -> SyncedRecord:
        contributions = {source: fields}
        merged = self._policy.merge(contributions)
        return SyncedRecord(
            category=category,
            record_type=record_type,
            record_key=key,
            primary_source=merged.primary_source,
            merged=merged.fields,
            provenance=merged.provenance,
            supplementary=merged.supplementary,
            contributions=contributions,
            checksum=checksum(merged.fields),
            last_sync_run_id=sync_run_id,
            last_fetched_at=result.fetched_at,
        )

    def _apply_contribution(
        self,
        row: SyncedRecord,
        source: str,
        fields: dict[str, Any],
        result: CategoryResult[Any],
        sync_run_id: uuid.UUID | None,
    ) -> bool:
        """Store ``source``'s contribution on ``row``; returns False when nothing changed."""
        if row.contributions.get(source) == fields:
            return False

        contributions = {**row.contributions, source: fields}
        merged = self._policy.merge(contributions)
        row.contributions = contributions
        row.merged = merged.fields
        row.provenance = merged.provenance
        row.supplementary = merged.supplementary
        row.primary_source = merged.primary_source
        row.checksum = checksum(merged.fields)
        row.last_sync_run_id = sync_run_id
        row.last_fetched_at = result.fetched_at
        return True
