"""Manual snapshot provider — the admin-curated last resort.

The snapshot is a single JSON file keyed by category::

    {
      "timetables": {"elections": [...], "deadlines": [...]},
      "candidates": {"races": [...], "candidates": [...]},
      "results": {"results": [...], "results_links": [...]}
    }

A category missing from the snapshot yields an empty payload.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from election_sync.lib.providers.base import (
    CandidateData,
    CandidateProvider,
    Category,
    CategoryResult,
    ManualProviderConfig,
    ProviderError,
    ResultData,
    ResultsProvider,
    TimetableData,
    TimetableProvider,
)
from election_sync.lib.providers.parsing import (
    candidates_from_document,
    results_from_document,
    timetable_from_document,
)


class ManualSnapshotProvider(TimetableProvider, CandidateProvider, ResultsProvider):
    """Serves election data from an admin-curated JSON snapshot file.

    Args:
        config: Location of the snapshot file.
    """

    def __init__(self, config: ManualProviderConfig) -> None:
        self._path = Path(config.snapshot_path)

    @property
    def provider_name(self) -> str:
        return "manual"

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        section = await self._section(Category.TIMETABLES)
        data = TimetableData() if section is None else self._parse(timetable_from_document, section)
        return self._result(Category.TIMETABLES, data)

    async def fetch_candidates(self) -> CategoryResult[CandidateData]:
        section = await self._section(Category.CANDIDATES)
        data = CandidateData() if section is None else self._parse(candidates_from_document, section)
        return self._result(Category.CANDIDATES, data)

    async def fetch_results_links(self) -> CategoryResult[ResultData]:
        section = await self._section(Category.RESULTS)
        data = ResultData() if section is None else self._parse(results_from_document, section)
        return self._result(Category.RESULTS, data)

    def _parse(self, parser: Any, section: Any) -> Any:
        source_url = self._path.as_uri() if self._path.is_absolute() else str(self._path)
        try:
            return parser(section, source_url=source_url)
        except ValueError as exc:
            raise ProviderError(self.provider_name, f"Malformed snapshot section: {exc}", cause=exc) from exc

    async def _section(self, category: Category) -> Any:
        """Load the snapshot and return one category's section, or None when absent."""
        snapshot = await asyncio.to_thread(self._load)
        return snapshot.get(category.value)

    def _load(self) -> dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProviderError(self.provider_name, f"Cannot read snapshot {self._path}: {exc}", cause=exc) from exc
        try:
            snapshot = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ProviderError(self.provider_name, f"Snapshot {self._path} is not valid JSON", cause=exc) from exc
        if not isinstance(snapshot, dict):
            msg = f"Snapshot {self._path} must be a JSON object keyed by category"
            raise ProviderError(self.provider_name, msg)
        return snapshot
