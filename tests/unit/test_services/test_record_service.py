"""Unit tests for the record store."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from election_sync.lib.precedence import PrecedencePolicy
from election_sync.lib.providers.base import (
    CandidateData,
    CandidateRecord,
    Category,
    CategoryResult,
    ElectionRecord,
    RaceRecord,
    ResultData,
    TimetableData,
)
from election_sync.models.synced_record import SyncedRecord
from election_sync.services.record_service import PersistenceError, RecordStore, UpsertCounts

DEFAULT_ORDER = ("inec_native", "inec_remote", "manual")


def _store(session_factory: async_sessionmaker[AsyncSession], **rules: list[str]) -> RecordStore:
    return RecordStore(session_factory, PrecedencePolicy.from_mapping(rules, DEFAULT_ORDER))


def _candidates(provider: str, *candidates: CandidateRecord) -> CategoryResult[CandidateData]:
    race = RaceRecord(election_id="2027-general", office="Governor", district="Lagos")
    return CategoryResult(
        category=Category.CANDIDATES,
        data=CandidateData(races=(race,), candidates=candidates),
        provider_name=provider,
    )


async def _records(session_factory: async_sessionmaker[AsyncSession], record_type: str) -> list[SyncedRecord]:
    async with session_factory() as session:
        result = await session.execute(select(SyncedRecord).where(SyncedRecord.record_type == record_type))
        return list(result.scalars().all())


class TestUpsert:
    """Tests for RecordStore.upsert()."""

    @pytest.mark.asyncio
    async def test_creates_one_row_per_entity(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        store = _store(session_factory)
        run_id = uuid.uuid4()
        result = _candidates(
            "inec_native",
            CandidateRecord(race_id="r1", full_name="Ada Obi", party="LP"),
            CandidateRecord(race_id="r1", full_name="Bayo Ade", party="APC"),
        )

        counts = await store.upsert("candidates", result, sync_run_id=run_id)

        assert counts == UpsertCounts(created=3, updated=0)
        rows = await _records(session_factory, "candidate")
        assert len(rows) == 2
        assert {r.primary_source for r in rows} == {"inec_native"}
        assert all(r.last_sync_run_id == run_id for r in rows)
        assert all(len(r.checksum) == 16 for r in rows)

    @pytest.mark.asyncio
    async def test_identical_reupsert_changes_nothing(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        store = _store(session_factory)
        result = _candidates("inec_native", CandidateRecord(race_id="r1", full_name="Ada Obi", party="LP"))
        await store.upsert("candidates", result)

        counts = await store.upsert("candidates", result)

        assert counts == UpsertCounts(created=0, updated=0)
        assert len(await _records(session_factory, "candidate")) == 1

    @pytest.mark.asyncio
    async def test_changed_contribution_is_an_update(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        store = _store(session_factory)
        await store.upsert(
            "candidates", _candidates("inec_native", CandidateRecord(race_id="r1", full_name="Ada Obi", party="LP"))
        )

        counts = await store.upsert(
            "candidates",
            _candidates(
                "inec_native",
                CandidateRecord(race_id="r1", full_name="Ada Obi", party="LP", photo_url="https://img/ada.png"),
            ),
        )

        assert counts == UpsertCounts(created=0, updated=1)
        (row,) = await _records(session_factory, "candidate")
        assert row.merged["photo_url"] == "https://img/ada.png"

    @pytest.mark.asyncio
    async def test_second_source_merges_with_precedence(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = _store(session_factory, biography=["manual", "inec_native"])
        await store.upsert(
            "candidates",
            _candidates("inec_native", CandidateRecord(race_id="r1", full_name="Ada Obi", biography="Engineer")),
        )

        counts = await store.upsert(
            "candidates",
            _candidates(
                "manual",
                CandidateRecord(race_id="r1", full_name="Ada Obi", biography="Engineer and former commissioner"),
            ),
        )

        assert counts.updated == 1
        (row,) = await _records(session_factory, "candidate")
        assert row.merged["biography"] == "Engineer and former commissioner"
        assert row.provenance["biography"] == "manual"
        assert row.provenance["full_name"] == "inec_native"
        assert row.supplementary["biography"] == {"inec_native": "Engineer"}
        assert set(row.contributions) == {"inec_native", "manual"}

    @pytest.mark.asyncio
    async def test_candidate_identity_follows_source_race_id(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = _store(session_factory)
        await store.upsert(
            "candidates", _candidates("inec_native", CandidateRecord(race_id="LA-Ikeja", full_name="Ada Obi"))
        )

        await store.upsert(
            "candidates", _candidates("inec_remote", CandidateRecord(race_id="race-17", full_name="Ada Obi"))
        )
        await store.upsert(
            "candidates", _candidates("manual", CandidateRecord(race_id="race-17", full_name="ada  obi"))
        )

        rows = await _records(session_factory, "candidate")
        assert sorted(r.record_key for r in rows) == ["LA-Ikeja|ADA OBI|", "race-17|ADA OBI|"]
        mirror_row = next(r for r in rows if r.record_key.startswith("race-17"))
        assert set(mirror_row.contributions) == {"inec_remote", "manual"}

    @pytest.mark.asyncio
    async def test_results_links_are_stored(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        store = _store(session_factory)
        result = CategoryResult(
            category=Category.RESULTS,
            data=ResultData(results_links=("https://irev.inec.gov.ng/elections",)),
            provider_name="inec_native",
        )

        counts = await store.upsert("results", result)

        assert counts.created == 1
        (row,) = await _records(session_factory, "results_link")
        assert row.record_key == "https://irev.inec.gov.ng/elections"
        assert row.category == "results"

    @pytest.mark.asyncio
    async def test_empty_payload_writes_nothing(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        store = _store(session_factory)
        result = CategoryResult(category=Category.TIMETABLES, data=TimetableData(), provider_name="manual")

        assert await store.upsert("timetables", result) == UpsertCounts()

    @pytest.mark.asyncio
    async def test_database_error_becomes_persistence_error(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = _store(session_factory)
        result = CategoryResult(
            category=Category.TIMETABLES,
            data=TimetableData(elections=(ElectionRecord(name="2027 General"),)),
            provider_name="inec_native",
        )

        with (
            patch.object(store, "_load_existing", new_callable=AsyncMock, side_effect=SQLAlchemyError("db down")),
            pytest.raises(PersistenceError, match="Failed to persist timetables records"),
        ):
            await store.upsert("timetables", result)

        assert await _records(session_factory, "election") == []
