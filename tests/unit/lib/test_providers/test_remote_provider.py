"""Unit tests for the remote mirror API provider."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from election_sync.lib.providers.base import ProviderError, RemoteProviderConfig, RetryPolicy
from election_sync.lib.providers.remote import InecRemoteProvider

API_BASE = "https://mirror.example.ng/api"


def _json_response(path: str, payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", f"{API_BASE}{path}"))


@pytest.fixture
async def provider() -> AsyncGenerator[InecRemoteProvider]:
    p = InecRemoteProvider(
        RemoteProviderConfig(api_base=f"{API_BASE}/", api_key="secret", retry=RetryPolicy(max_retries=1, base_delay=0))
    )
    yield p
    await p.close()


class TestClientSetup:
    """Tests for client construction."""

    @pytest.mark.asyncio
    async def test_bearer_header_and_base_url(self, provider: InecRemoteProvider) -> None:
        assert provider._client.headers["Authorization"] == "Bearer secret"
        assert str(provider._client.base_url).rstrip("/") == API_BASE
        assert provider.is_configured


class TestFetchTimetables:
    """Tests for fetch_timetables()."""

    @pytest.mark.asyncio
    async def test_elections_and_deadlines(self, provider: InecRemoteProvider) -> None:
        payloads = {
            "/elections": [{"id": 7, "name": "2027 General", "date_start": "2027-02-20"}, {"id": 8}],
            "/deadlines": [{"id": 1, "election_id": "7", "kind": "nominations_close", "due_at": "2026-10-01"}],
        }

        async def handler(path: str, params: dict | None = None) -> httpx.Response:
            return _json_response(path, payloads[path])

        with patch.object(provider._client, "get", new_callable=AsyncMock, side_effect=handler):
            result = await provider.fetch_timetables()

        assert result.provider_name == "inec_remote"
        (election,) = result.data.elections
        assert election.source_url == f"{API_BASE}/elections/7"
        assert [d.kind for d in result.data.deadlines] == ["nominations_close"]

    @pytest.mark.asyncio
    async def test_non_list_response_raises(self, provider: InecRemoteProvider) -> None:
        resp = _json_response("/elections", {"elections": []})

        with (
            patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp),
            pytest.raises(ProviderError, match="expected a JSON array"),
        ):
            await provider.fetch_timetables()


class TestFetchCandidates:
    """Tests for fetch_candidates()."""

    @pytest.mark.asyncio
    async def test_candidates_are_fetched_per_race(self, provider: InecRemoteProvider) -> None:
        calls: list[tuple[str, dict | None]] = []

        async def handler(path: str, params: dict | None = None) -> httpx.Response:
            calls.append((path, params))
            if path == "/races":
                return _json_response(path, [{"id": "r1", "election_id": "e1", "office": "Governor"}])
            return _json_response(path, [{"id": 3, "full_name": "Ada Obi", "party": "LP"}])

        with patch.object(provider._client, "get", new_callable=AsyncMock, side_effect=handler):
            result = await provider.fetch_candidates()

        assert calls == [("/races", None), ("/candidates", {"race": "r1"})]
        (candidate,) = result.data.candidates
        assert candidate.race_id == "r1"
        assert candidate.source_url == f"{API_BASE}/candidates/3"

    @pytest.mark.asyncio
    async def test_failing_race_is_skipped(self, provider: InecRemoteProvider) -> None:
        races = [
            {"id": "r1", "election_id": "e1", "office": "Governor"},
            {"id": "r2", "election_id": "e1", "office": "Senate"},
        ]

        async def handler(path: str, params: dict | None = None) -> httpx.Response:
            if path == "/races":
                return _json_response(path, races)
            if params == {"race": "r1"}:
                return _json_response(path, {"detail": "not found"}, status=404)
            return _json_response(path, [{"full_name": "Bayo Ade"}])

        with patch.object(provider._client, "get", new_callable=AsyncMock, side_effect=handler):
            result = await provider.fetch_candidates()

        assert len(result.data.races) == 2
        assert [c.race_id for c in result.data.candidates] == ["r2"]


class TestFetchResultsLinks:
    """Tests for fetch_results_links()."""

    @pytest.mark.asyncio
    async def test_rows_come_with_results_link(self, provider: InecRemoteProvider) -> None:
        rows = [{"id": 1, "election_id": "e1", "race_id": "r1", "pu_code": "PU-1", "party": "APC", "votes": 40}]
        resp = _json_response("/results", rows)

        with patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp):
            result = await provider.fetch_results_links()

        assert result.data.results[0].votes == 40
        assert result.data.results_links == (f"{API_BASE}/results",)

    @pytest.mark.asyncio
    async def test_no_rows_means_no_links(self, provider: InecRemoteProvider) -> None:
        resp = _json_response("/results", [])

        with patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp):
            result = await provider.fetch_results_links()

        assert result.data.results == ()
        assert result.data.results_links == ()


class TestRequestErrors:
    """Tests for upstream error mapping."""

    @pytest.mark.asyncio
    async def test_server_error_is_retried_then_raised(self, provider: InecRemoteProvider) -> None:
        resp = _json_response("/results", {}, status=503)

        with (
            patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp) as mock_get,
            pytest.raises(ProviderError, match="HTTP 503") as exc_info,
        ):
            await provider.fetch_results_links()

        assert mock_get.await_count == 2
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_rate_limit(self, provider: InecRemoteProvider) -> None:
        resp = _json_response("/elections", {}, status=429)

        with (
            patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp),
            pytest.raises(ProviderError, match="Rate limited by remote API"),
        ):
            await provider.fetch_timetables()

    @pytest.mark.asyncio
    async def test_invalid_json_is_not_retried(self, provider: InecRemoteProvider) -> None:
        resp = httpx.Response(200, content=b"<html>", request=httpx.Request("GET", f"{API_BASE}/results"))

        with (
            patch.object(provider._client, "get", new_callable=AsyncMock, return_value=resp) as mock_get,
            pytest.raises(ProviderError, match="Invalid JSON response"),
        ):
            await provider.fetch_results_links()

        assert mock_get.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self, provider: InecRemoteProvider) -> None:
        with (
            patch.object(
                provider._client, "get", new_callable=AsyncMock, side_effect=httpx.ConnectTimeout("timed out")
            ),
            pytest.raises(ProviderError, match="Timeout requesting /elections"),
        ):
            await provider.fetch_timetables()
