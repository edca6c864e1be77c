"""Tests for raw document to record mapping."""

import pytest

from election_sync.lib.providers.parsing import (
    candidate_from_raw,
    candidates_from_document,
    election_from_raw,
    result_from_raw,
    results_from_document,
    timetable_from_document,
)


class TestElectionFromRaw:
    """Tests for election_from_raw."""

    def test_alternate_field_names(self) -> None:
        record = election_from_raw(
            {"title": "Kogi Governorship", "type": "governorship", "state": "KG", "date": "11/11/2027"},
            source_url="https://inec.gov.ng/timetable",
        )

        assert record is not None
        assert record.name == "Kogi Governorship"
        assert record.scope == "governorship"
        assert record.state_code == "KG"
        assert record.date_start == "2027-11-11"
        assert record.source_url == "https://inec.gov.ng/timetable"
        assert len(record.source_hash) == 16

    def test_missing_name_is_skipped(self) -> None:
        assert election_from_raw({"date": "2027-02-25"}) is None


class TestCandidateFromRaw:
    """Tests for candidate_from_raw."""

    def test_explicit_race_overrides_raw(self) -> None:
        record = candidate_from_raw({"name": "Ada Obi", "race": "ignored", "party_name": "LP"}, race_id="r-1")

        assert record is not None
        assert record.race_id == "r-1"
        assert record.party == "LP"
        assert record.inec_verified is False

    def test_verified_flag_and_blank_optionals(self) -> None:
        record = candidate_from_raw({"full_name": "Ada Obi", "race_id": "r-1", "verified": True, "photo_url": ""})

        assert record is not None
        assert record.inec_verified is True
        assert record.photo_url is None

    def test_missing_race_is_skipped(self) -> None:
        assert candidate_from_raw({"full_name": "Ada Obi"}) is None


class TestResultFromRaw:
    """Tests for result_from_raw."""

    def test_bad_votes_default_to_zero(self) -> None:
        record = result_from_raw(
            {"election_id": "e1", "race_id": "r1", "polling_unit": "PU-9", "party": "apc", "votes": "n/a"}
        )

        assert record is not None
        assert record.pu_code == "PU-9"
        assert record.votes == 0

    def test_missing_party_is_skipped(self) -> None:
        assert result_from_raw({"election_id": "e1", "race_id": "r1", "pu_code": "PU-9"}) is None


class TestTimetableFromDocument:
    """Tests for timetable_from_document."""

    def test_object_with_deadlines(self) -> None:
        data = timetable_from_document(
            {
                "elections": [{"name": "2027 General", "date_start": "2027-02-20"}, {"date": "no name"}],
                "deadlines": [
                    {"election_id": "2027 General", "kind": "campaign_end", "due_at": "2027-02-18"},
                    {"kind": "incomplete"},
                ],
            }
        )

        assert [e.name for e in data.elections] == ["2027 General"]
        assert [d.kind for d in data.deadlines] == ["campaign_end"]

    def test_bare_list_of_elections(self) -> None:
        data = timetable_from_document([{"name": "Edo Governorship"}])

        assert len(data.elections) == 1
        assert data.deadlines == ()

    def test_non_list_section_raises(self) -> None:
        with pytest.raises(ValueError, match="'elections'"):
            timetable_from_document({"elections": "soon"})


class TestCandidatesFromDocument:
    """Tests for candidates_from_document."""

    def test_races_and_candidates(self) -> None:
        data = candidates_from_document(
            {
                "races": [{"election_id": "e1", "office": "President"}],
                "candidates": [{"full_name": "Ada Obi", "race_id": "e1|president|"}],
            }
        )

        assert len(data.races) == 1
        assert len(data.candidates) == 1

    def test_list_document_raises(self) -> None:
        with pytest.raises(ValueError, match="candidate document"):
            candidates_from_document([])


class TestResultsFromDocument:
    """Tests for results_from_document."""

    def test_links_only(self) -> None:
        data = results_from_document({"results_links": ["https://irev.inec.gov.ng/elections"]})

        assert data.results == ()
        assert data.results_links == ("https://irev.inec.gov.ng/elections",)

    def test_non_string_links_raise(self) -> None:
        with pytest.raises(ValueError, match="results_links"):
            results_from_document({"results_links": [{"url": "x"}]})
