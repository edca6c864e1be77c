"""Direct INEC acquisition provider.

Reads the timetable and candidate documents INEC publishes at configured
URLs. JSON and CSV documents are parsed fully; HTML timetable pages get a
minimal date extraction. PDF and spreadsheet documents are reported as
unsupported content.
"""

import csv
import io
import json
import re

import httpx
from loguru import logger

from election_sync.lib.providers.base import (
    CandidateData,
    CandidateProvider,
    CandidateRecord,
    Category,
    CategoryResult,
    ElectionRecord,
    NativeProviderConfig,
    ProviderError,
    RaceRecord,
    ResultData,
    ResultsProvider,
    TimetableData,
    TimetableProvider,
)
from election_sync.lib.providers.normalize import checksum, normalize_date
from election_sync.lib.providers.parsing import candidates_from_document, timetable_from_document

_DATE_RE = re.compile(r"\b(\d{1,2}[/-]\d{1,2}[/-]\d{4})\b")
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)

_UNSUPPORTED_TYPES = ("application/pdf", "application/vnd.openxmlformats", "application/vnd.ms-excel")


class InecNativeProvider(TimetableProvider, CandidateProvider, ResultsProvider):
    """Fetches election data straight from INEC-published documents.

    Args:
        config: Document URLs, timeout and retry policy.
    """

    def __init__(self, config: NativeProviderConfig) -> None:
        self._config = config
        self.retry_policy = config.retry

    @property
    def provider_name(self) -> str:
        return "inec_native"

    @property
    def is_configured(self) -> bool:
        cfg = self._config
        return bool(cfg.timetable_urls or cfg.candidate_urls or cfg.results_urls)

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        """Fetch and merge every configured timetable document.

        Returns:
            Elections and deadlines from all documents that could be read.

        Raises:
            ProviderError: If every configured URL failed.
        """
        elections: list[ElectionRecord] = []
        deadlines = []
        async with httpx.AsyncClient(timeout=self._config.timeout, follow_redirects=True) as client:
            failures: list[ProviderError] = []
            for url in self._config.timetable_urls:
                try:
                    data = await self._parse_timetable_url(client, url)
                except ProviderError as exc:
                    logger.warning("Failed to read timetable {}: {}", url, exc.message)
                    failures.append(exc)
                    continue
                elections.extend(data.elections)
                deadlines.extend(data.deadlines)

        self._raise_if_all_failed("timetable", len(self._config.timetable_urls), failures)
        return self._result(Category.TIMETABLES, TimetableData(elections=tuple(elections), deadlines=tuple(deadlines)))

    async def fetch_candidates(self) -> CategoryResult[CandidateData]:
        """Fetch and merge every configured candidate list.

        Returns:
            Races and candidates from all lists that could be read.

        Raises:
            ProviderError: If every configured URL failed.
        """
        races: dict[str, RaceRecord] = {}
        candidates: list[CandidateRecord] = []
        async with httpx.AsyncClient(timeout=self._config.timeout, follow_redirects=True) as client:
            failures: list[ProviderError] = []
            for url in self._config.candidate_urls:
                try:
                    data = await self._parse_candidate_url(client, url)
                except ProviderError as exc:
                    logger.warning("Failed to read candidate list {}: {}", url, exc.message)
                    failures.append(exc)
                    continue
                for race in data.races:
                    races.setdefault(race.record_key(), race)
                candidates.extend(data.candidates)

        self._raise_if_all_failed("candidate", len(self._config.candidate_urls), failures)
        return self._result(
            Category.CANDIDATES, CandidateData(races=tuple(races.values()), candidates=tuple(candidates))
        )

    async def fetch_results_links(self) -> CategoryResult[ResultData]:
        """Return the configured result portal links.

        Per-unit results are only published through the viewing portal, so
        no result rows are produced here.
        """
        return self._result(Category.RESULTS, ResultData(results=(), results_links=self._config.results_urls))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _raise_if_all_failed(self, kind: str, attempted: int, failures: list[ProviderError]) -> None:
        if attempted and len(failures) == attempted:
            msg = f"All {attempted} {kind} URL(s) failed; last error: {failures[-1].message}"
            raise ProviderError(self.provider_name, msg, status_code=failures[-1].status_code, cause=failures[-1])

    async def _get(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        """GET a document, retrying transport errors, rate limiting and 5xx responses."""

        async def attempt() -> httpx.Response:
            try:
                response = await client.get(url)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                message = "Rate limited" if status == 429 else f"HTTP {status}: {exc.response.reason_phrase}"
                raise ProviderError(self.provider_name, message, status_code=status, cause=exc) from exc
            except httpx.TimeoutException as exc:
                raise ProviderError(self.provider_name, f"Timeout fetching {url}", cause=exc) from exc
            except httpx.RequestError as exc:
                raise ProviderError(self.provider_name, f"Request failed: {exc}", cause=exc) from exc

        return await self._with_retries(attempt, description=url)

    async def _parse_timetable_url(self, client: httpx.AsyncClient, url: str) -> TimetableData:
        response = await self._get(client, url)
        content_type = response.headers.get("content-type", "").lower()

        if "json" in content_type:
            try:
                return timetable_from_document(response.json(), source_url=url)
            except (json.JSONDecodeError, ValueError) as exc:
                raise ProviderError(self.provider_name, f"Malformed timetable JSON at {url}: {exc}", cause=exc) from exc
        if "text/html" in content_type:
            return self._parse_html_timetable(response.text, url)
        raise ProviderError(self.provider_name, f"Unsupported content type {content_type or 'unknown'!r} at {url}")

    def _parse_html_timetable(self, html: str, url: str) -> TimetableData:
        """Extract an election date from a timetable page.

        Only the page title and the first numeric date are used; pages
        without a recognizable date yield no elections.
        """
        dates = _DATE_RE.findall(html)
        if not dates:
            logger.info("No dates found in timetable page {}", url)
            return TimetableData()

        title_match = _TITLE_RE.search(html)
        name = " ".join(title_match.group(1).split()) if title_match else ""
        election = ElectionRecord(
            name=name or "INEC election timetable",
            scope="general",
            date_start=normalize_date(dates[0]),
            source_url=url,
            source_hash=checksum({"url": url, "html": html[:1000]}),
        )
        return TimetableData(elections=(election,))

    async def _parse_candidate_url(self, client: httpx.AsyncClient, url: str) -> CandidateData:
        response = await self._get(client, url)
        content_type = response.headers.get("content-type", "").lower()

        if "text/csv" in content_type:
            return self._parse_csv_candidates(response.text, url)
        if "json" in content_type:
            try:
                return candidates_from_document(response.json(), source_url=url)
            except (json.JSONDecodeError, ValueError) as exc:
                raise ProviderError(self.provider_name, f"Malformed candidate JSON at {url}: {exc}", cause=exc) from exc
        if content_type.startswith(_UNSUPPORTED_TYPES):
            raise ProviderError(self.provider_name, f"Unsupported candidate file type {content_type!r} at {url}")
        raise ProviderError(self.provider_name, f"Unsupported content type {content_type or 'unknown'!r} at {url}")

    def _parse_csv_candidates(self, text: str, url: str) -> CandidateData:
        """Parse an INEC candidate list CSV.

        Columns are matched case-insensitively. Each distinct
        ``state``/``constituency`` (or office) pair becomes one race.
        """
        reader = csv.DictReader(io.StringIO(text.strip()))
        races: dict[str, RaceRecord] = {}
        candidates: list[CandidateRecord] = []

        for raw_row in reader:
            row = {(k or "").strip().lower(): (v or "").strip() for k, v in raw_row.items()}
            office = row.get("office") or row.get("position") or "Unknown"
            district = row.get("constituency") or row.get("district") or None
            race_id = f"{row.get('state', '')}-{district or office}"
            if race_id not in races:
                seats = row.get("seats", "")
                races[race_id] = RaceRecord(
                    election_id=row.get("election_id") or row.get("election") or "general",
                    office=office,
                    district=district,
                    seats=int(seats) if seats.isdigit() else 1,
                    source_url=url,
                )

            full_name = row.get("full_name") or row.get("name")
            if full_name:
                candidates.append(
                    CandidateRecord(
                        race_id=race_id,
                        full_name=full_name,
                        party=row.get("party") or row.get("party_abbreviation") or None,
                        inec_verified=True,
                        source_url=url,
                    )
                )

        return CandidateData(races=tuple(races.values()), candidates=tuple(candidates))
