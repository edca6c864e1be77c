"""Remote mirror API provider.

The mirror exposes the INEC data set over a small REST API::

    GET /elections
    GET /deadlines
    GET /races
    GET /candidates?race=<race id>
    GET /results

Every endpoint returns a JSON array.
"""

import json
from typing import Any

import httpx
from loguru import logger

from election_sync.lib.providers.base import (
    CandidateData,
    CandidateProvider,
    Category,
    CategoryResult,
    ProviderError,
    RemoteProviderConfig,
    ResultData,
    ResultsProvider,
    TimetableData,
    TimetableProvider,
)
from election_sync.lib.providers.parsing import (
    candidate_from_raw,
    deadline_from_raw,
    election_from_raw,
    race_from_raw,
    result_from_raw,
)


class InecRemoteProvider(TimetableProvider, CandidateProvider, ResultsProvider):
    """Fetches election data from the remote mirror API.

    Args:
        config: API base URL, optional bearer key, timeout and retry policy.
    """

    def __init__(self, config: RemoteProviderConfig) -> None:
        self._api_base = config.api_base.rstrip("/")
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = httpx.AsyncClient(base_url=self._api_base, headers=headers, timeout=config.timeout)
        self.retry_policy = config.retry

    @property
    def provider_name(self) -> str:
        return "inec_remote"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_base)

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        """Fetch elections and deadlines from the mirror.

        Raises:
            ProviderError: If either endpoint fails.
        """
        elections_raw = await self._request_list("/elections")
        deadlines_raw = await self._request_list("/deadlines")

        elections = [
            election_from_raw(e, source_url=f"{self._api_base}/elections/{e.get('id', '')}") for e in elections_raw
        ]
        deadlines = [
            deadline_from_raw(d, source_url=f"{self._api_base}/deadlines/{d.get('id', '')}") for d in deadlines_raw
        ]
        data = TimetableData(
            elections=tuple(e for e in elections if e is not None),
            deadlines=tuple(d for d in deadlines if d is not None),
        )
        return self._result(Category.TIMETABLES, data)

    async def fetch_candidates(self) -> CategoryResult[CandidateData]:
        """Fetch races, then the candidates of each race.

        A race whose candidate request fails is logged and skipped; the
        remaining races still contribute.

        Raises:
            ProviderError: If the race listing fails.
        """
        races_raw = await self._request_list("/races")

        races = []
        candidates = []
        for raw_race in races_raw:
            race_id = str(raw_race.get("id", ""))
            race = race_from_raw(raw_race, source_url=f"{self._api_base}/races/{race_id}")
            if race is None:
                continue
            races.append(race)
            try:
                candidates_raw = await self._request_list("/candidates", params={"race": race_id})
            except ProviderError as exc:
                logger.warning("Failed to fetch candidates for race {}: {}", race_id, exc.message)
                continue
            for raw_candidate in candidates_raw:
                candidate = candidate_from_raw(
                    raw_candidate,
                    race_id=str(raw_candidate.get("race_id") or race_id),
                    source_url=f"{self._api_base}/candidates/{raw_candidate.get('id', '')}",
                )
                if candidate is not None:
                    candidates.append(candidate)

        return self._result(Category.CANDIDATES, CandidateData(races=tuple(races), candidates=tuple(candidates)))

    async def fetch_results_links(self) -> CategoryResult[ResultData]:
        """Fetch per-unit result rows; the results endpoint itself is the portal link.

        Raises:
            ProviderError: If the results endpoint fails.
        """
        results_raw = await self._request_list("/results")
        results = [result_from_raw(r, source_url=f"{self._api_base}/results/{r.get('id', '')}") for r in results_raw]
        rows = tuple(r for r in results if r is not None)
        links = (f"{self._api_base}/results",) if rows else ()
        return self._result(Category.RESULTS, ResultData(results=rows, results_links=links))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request_list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """GET an endpoint with retries and require a JSON array of objects."""
        data = await self._with_retries(lambda: self._request(path, params), description=path)
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            msg = f"Unexpected response shape for {path}: expected a JSON array of objects"
            raise ProviderError(self.provider_name, msg)
        return data

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a single GET request to the mirror API."""
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                logger.warning("Remote API rate limited request for {}", path)
                raise ProviderError(
                    self.provider_name, "Rate limited by remote API", status_code=status, cause=exc
                ) from exc
            logger.error("Remote API error: {} {} for {}", status, exc.response.reason_phrase, path)
            raise ProviderError(
                self.provider_name,
                f"HTTP {status}: {exc.response.reason_phrase}",
                status_code=status,
                cause=exc,
            ) from exc
        except httpx.TimeoutException as exc:
            logger.error("Remote API timeout for {}", path)
            raise ProviderError(self.provider_name, f"Timeout requesting {path}", cause=exc) from exc
        except httpx.RequestError as exc:
            logger.error("Remote API request failed: {}", exc)
            raise ProviderError(self.provider_name, f"Request failed: {exc}", cause=exc) from exc
        except json.JSONDecodeError as exc:
            logger.error("Remote API returned non-JSON response for {}", path)
            # Upstream answered; a bad body is not retryable
            raise ProviderError(
                self.provider_name, f"Invalid JSON response for {path}", status_code=200, cause=exc
            ) from exc
