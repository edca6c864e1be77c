"""Map raw upstream dicts into normalized records.

Upstream documents name the same field in several ways (``name`` vs
``title``, ``date`` vs ``date_start`` ...). The mappers accept every
spelling seen in practice and drop entries missing required fields.
"""

from typing import Any

from loguru import logger

from election_sync.lib.providers.base import (
    CandidateData,
    CandidateRecord,
    DeadlineRecord,
    ElectionRecord,
    RaceRecord,
    ResultData,
    ResultRecord,
    TimetableData,
)
from election_sync.lib.providers.normalize import checksum, first_present, normalize_date


def _opt_str(value: Any) -> str | None:
    return None if value in (None, "") else str(value)


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def election_from_raw(raw: dict[str, Any], *, source_url: str = "") -> ElectionRecord | None:
    """Map a raw election entry; returns None when it has no name."""
    name = first_present(raw, "name", "title")
    if not name:
        logger.warning("Skipping election entry without a name: {!r}", raw)
        return None
    date_start = _opt_str(first_present(raw, "date_start", "start_date", "date"))
    date_end = _opt_str(first_present(raw, "date_end", "end_date"))
    return ElectionRecord(
        name=str(name).strip(),
        scope=str(first_present(raw, "scope", "type") or "general"),
        status=str(raw.get("status") or "upcoming"),
        state_code=_opt_str(first_present(raw, "state_code", "state")),
        lga_code=_opt_str(first_present(raw, "lga_code", "lga")),
        ward_code=_opt_str(first_present(raw, "ward_code", "ward")),
        date_start=normalize_date(date_start) if date_start else None,
        date_end=normalize_date(date_end) if date_end else None,
        source_url=str(raw.get("source_url") or source_url),
        source_hash=checksum(raw),
    )


def deadline_from_raw(raw: dict[str, Any], *, source_url: str = "") -> DeadlineRecord | None:
    """Map a raw deadline entry; returns None when election, kind or due date is missing."""
    election_id = first_present(raw, "election_id", "election")
    kind = first_present(raw, "kind", "type")
    due_at = first_present(raw, "due_at", "due_date", "deadline")
    if not election_id or not kind or not due_at:
        logger.warning("Skipping incomplete deadline entry: {!r}", raw)
        return None
    return DeadlineRecord(
        election_id=str(election_id),
        kind=str(kind),
        due_at=str(due_at),
        source_url=str(raw.get("source_url") or source_url),
    )


def race_from_raw(raw: dict[str, Any], *, source_url: str = "") -> RaceRecord | None:
    """Map a raw race entry; returns None when election or office is missing."""
    election_id = first_present(raw, "election_id", "election")
    office = first_present(raw, "office", "position", "name")
    if not election_id or not office:
        logger.warning("Skipping incomplete race entry: {!r}", raw)
        return None
    return RaceRecord(
        election_id=str(election_id),
        office=str(office),
        district=_opt_str(first_present(raw, "district", "constituency")),
        seats=_to_int(raw.get("seats"), 1),
        source_url=str(raw.get("source_url") or source_url),
    )


def candidate_from_raw(
    raw: dict[str, Any],
    *,
    race_id: str | None = None,
    source_url: str = "",
) -> CandidateRecord | None:
    """Map a raw candidate entry; returns None when name or race is missing."""
    full_name = first_present(raw, "full_name", "name")
    race = race_id or first_present(raw, "race_id", "race")
    if not full_name or not race:
        logger.warning("Skipping incomplete candidate entry: {!r}", raw)
        return None
    return CandidateRecord(
        race_id=str(race),
        full_name=str(full_name).strip(),
        party=_opt_str(first_present(raw, "party", "party_name", "party_abbreviation")),
        inec_verified=bool(raw.get("inec_verified") or raw.get("verified")),
        photo_url=_opt_str(first_present(raw, "photo_url", "photo", "image")),
        manifesto_url=_opt_str(first_present(raw, "manifesto_url", "manifesto")),
        biography=_opt_str(first_present(raw, "biography", "bio")),
        source_url=str(raw.get("source_url") or source_url),
    )


def result_from_raw(raw: dict[str, Any], *, source_url: str = "") -> ResultRecord | None:
    """Map a raw result row; returns None when any key field is missing."""
    election_id = raw.get("election_id")
    race_id = raw.get("race_id")
    pu_code = first_present(raw, "pu_code", "polling_unit")
    party = raw.get("party")
    if not election_id or not race_id or not pu_code or not party:
        logger.warning("Skipping incomplete result row: {!r}", raw)
        return None
    return ResultRecord(
        election_id=str(election_id),
        race_id=str(race_id),
        pu_code=str(pu_code),
        party=str(party),
        votes=_to_int(raw.get("votes"), 0),
        source_url=str(raw.get("source_url") or source_url),
        captured_at=_opt_str(first_present(raw, "captured_at", "timestamp")),
    )


def _entries(document: Any, key: str) -> list[dict[str, Any]]:
    """Return the list stored under ``key``, rejecting anything that is not a list of objects."""
    entries = document.get(key, []) if isinstance(document, dict) else document
    if entries is None:
        return []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        msg = f"Expected {key!r} to be a list of objects"
        raise ValueError(msg)
    return entries


def timetable_from_document(document: Any, *, source_url: str = "") -> TimetableData:
    """Parse a JSON timetable document.

    Accepts ``{"elections": [...], "deadlines": [...]}`` or a bare list of
    elections.

    Raises:
        ValueError: If the document does not have the expected shape.
    """
    elections = [election_from_raw(e, source_url=source_url) for e in _entries(document, "elections")]
    deadlines: list[DeadlineRecord | None] = []
    if isinstance(document, dict):
        deadlines = [deadline_from_raw(d, source_url=source_url) for d in _entries(document, "deadlines")]
    return TimetableData(
        elections=tuple(e for e in elections if e is not None),
        deadlines=tuple(d for d in deadlines if d is not None),
    )


def candidates_from_document(document: Any, *, source_url: str = "") -> CandidateData:
    """Parse a JSON candidate document of the form ``{"races": [...], "candidates": [...]}``.

    Raises:
        ValueError: If the document does not have the expected shape.
    """
    if not isinstance(document, dict):
        msg = "Expected a candidate document object with 'races' and 'candidates'"
        raise ValueError(msg)
    races = [race_from_raw(r, source_url=source_url) for r in _entries(document, "races")]
    candidates = [candidate_from_raw(c, source_url=source_url) for c in _entries(document, "candidates")]
    return CandidateData(
        races=tuple(r for r in races if r is not None),
        candidates=tuple(c for c in candidates if c is not None),
    )


def results_from_document(document: Any, *, source_url: str = "") -> ResultData:
    """Parse a JSON results document of the form ``{"results": [...], "results_links": [...]}``.

    Raises:
        ValueError: If the document does not have the expected shape.
    """
    if not isinstance(document, dict):
        msg = "Expected a results document object with 'results' and 'results_links'"
        raise ValueError(msg)
    results = [result_from_raw(r, source_url=source_url) for r in _entries(document, "results")]
    links = document.get("results_links") or []
    if not isinstance(links, list) or not all(isinstance(link, str) for link in links):
        msg = "Expected 'results_links' to be a list of URLs"
        raise ValueError(msg)
    return ResultData(
        results=tuple(r for r in results if r is not None),
        results_links=tuple(links),
    )
