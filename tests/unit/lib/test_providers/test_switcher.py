"""Unit tests for ordered provider fallback."""

import asyncio
from typing import Any

import pytest

from election_sync.lib.providers.base import (
    CandidateData,
    CandidateProvider,
    CandidateRecord,
    Category,
    CategoryResult,
    ElectionRecord,
    ProviderError,
    ResultData,
    ResultsProvider,
    TimetableData,
    TimetableProvider,
)
from election_sync.lib.providers.switcher import AggregatedProviderError, ProviderSwitcher


def _elections(count: int) -> TimetableData:
    return TimetableData(elections=tuple(ElectionRecord(name=f"Election {i}") for i in range(count)))


class _FakeProvider(TimetableProvider, CandidateProvider, ResultsProvider):
    """Provider whose outcome per call is scripted: a payload, an exception, or a delay."""

    def __init__(self, name: str, outcome: Any = None, *, delay: float = 0.0) -> None:
        self._name = name
        self._outcome = outcome
        self._delay = delay
        self.calls = 0

    @property
    def provider_name(self) -> str:
        return self._name

    async def _answer(self, category: Category, empty: Any) -> CategoryResult[Any]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._result(category, self._outcome if self._outcome is not None else empty)

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        return await self._answer(Category.TIMETABLES, TimetableData())

    async def fetch_candidates(self) -> CategoryResult[CandidateData]:
        return await self._answer(Category.CANDIDATES, CandidateData())

    async def fetch_results_links(self) -> CategoryResult[ResultData]:
        return await self._answer(Category.RESULTS, ResultData())


class _TimetableOnlyProvider(TimetableProvider):
    def __init__(self) -> None:
        self.calls = 0

    @property
    def provider_name(self) -> str:
        return "timetable_only"

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        self.calls += 1
        return self._result(Category.TIMETABLES, _elections(1))


class TestResolve:
    """Tests for ProviderSwitcher.resolve()."""

    @pytest.mark.asyncio
    async def test_first_provider_with_data_wins_and_later_ones_are_not_called(self) -> None:
        first = _FakeProvider("native", _elections(2))
        second = _FakeProvider("remote", _elections(5))
        switcher = ProviderSwitcher([first, second])

        result = await switcher.resolve(Category.TIMETABLES)

        assert result.provider_name == "native"
        assert len(result.data.elections) == 2
        assert (first.calls, second.calls) == (1, 0)

    @pytest.mark.asyncio
    async def test_empty_payload_falls_through(self) -> None:
        native = _FakeProvider("native", _elections(0))
        remote = _FakeProvider("remote", _elections(5))
        manual = _FakeProvider("manual", _elections(1))
        switcher = ProviderSwitcher([native, remote, manual])

        result = await switcher.resolve(Category.TIMETABLES)

        assert result.provider_name == "remote"
        assert len(result.data.elections) == 5
        assert native.calls == 1
        assert manual.calls == 0

    @pytest.mark.asyncio
    async def test_error_falls_through_to_next_provider(self) -> None:
        candidates = CandidateData(candidates=(CandidateRecord(race_id="r1", full_name="Ada Obi"),))
        failing = _FakeProvider("native", ProviderError("native", "HTTP 500: Internal Server Error", 500))
        switcher = ProviderSwitcher([failing, _FakeProvider("remote", candidates)])

        result = await switcher.resolve(Category.CANDIDATES)

        assert result.provider_name == "remote"

    @pytest.mark.asyncio
    async def test_all_empty_raises_no_data(self) -> None:
        switcher = ProviderSwitcher([_FakeProvider("native"), _FakeProvider("manual")])

        with pytest.raises(AggregatedProviderError) as exc_info:
            await switcher.resolve(Category.RESULTS)

        assert exc_info.value.reason == "no_data"
        assert exc_info.value.failures == []
        assert str(exc_info.value) == "No provider returned data for results (empty: native, manual)"

    @pytest.mark.asyncio
    async def test_all_failing_lists_every_failure_in_order(self) -> None:
        native = _FakeProvider("native", _elections(1), delay=1.0)
        remote = _FakeProvider("remote", ProviderError("remote", "HTTP 503: Service Unavailable", 503))
        manual = _FakeProvider("manual", RuntimeError("disk on fire"))
        switcher = ProviderSwitcher([native, remote, manual], call_timeout=0.05)

        with pytest.raises(AggregatedProviderError) as exc_info:
            await switcher.resolve(Category.TIMETABLES)

        error = exc_info.value
        assert error.reason == "all_failed"
        assert [f.provider_name for f in error.failures] == ["native", "remote", "manual"]
        message = str(error)
        assert message.startswith("All providers failed for timetables: native: timeout after 0.05s; ")
        assert message.index("native: timeout") < message.index("remote: HTTP 503")
        assert message.endswith("; manual: disk on fire")

    @pytest.mark.asyncio
    async def test_plain_exceptions_are_reported_by_message(self) -> None:
        native = _FakeProvider("Native", Exception("timeout"))
        remote = _FakeProvider("Remote", RuntimeError("503"))
        switcher = ProviderSwitcher([native, remote])

        with pytest.raises(AggregatedProviderError) as exc_info:
            await switcher.resolve(Category.TIMETABLES)

        assert str(exc_info.value) == "All providers failed for timetables: Native: timeout; Remote: 503"
        assert isinstance(exc_info.value.failures[1].cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_exception_without_message_is_reported_by_type(self) -> None:
        switcher = ProviderSwitcher([_FakeProvider("manual", RuntimeError())])

        with pytest.raises(AggregatedProviderError, match=r"manual: RuntimeError$"):
            await switcher.resolve(Category.RESULTS)

    @pytest.mark.asyncio
    async def test_empty_providers_are_kept_apart_from_failures(self) -> None:
        native = _FakeProvider("native")
        remote = _FakeProvider("remote", ProviderError("remote", "HTTP 503: Service Unavailable", 503))
        manual = _FakeProvider("manual", Exception("snapshot missing"))
        switcher = ProviderSwitcher([native, remote, manual])

        with pytest.raises(AggregatedProviderError) as exc_info:
            await switcher.resolve(Category.CANDIDATES)

        error = exc_info.value
        assert error.reason == "all_failed"
        assert [f.provider_name for f in error.failures] == ["remote", "manual"]
        assert error.empty_providers == ["native"]
        assert str(error) == (
            "All providers failed for candidates: remote: HTTP 503: Service Unavailable; "
            "manual: snapshot missing (empty: native)"
        )
        assert (native.calls, remote.calls, manual.calls) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_mixed_failure_and_empty_mentions_both(self) -> None:
        switcher = ProviderSwitcher(
            [_FakeProvider("native", ProviderError("native", "HTTP 404", 404)), _FakeProvider("manual")]
        )

        with pytest.raises(AggregatedProviderError, match=r"native: HTTP 404 \(empty: manual\)"):
            await switcher.resolve(Category.TIMETABLES)

    @pytest.mark.asyncio
    async def test_providers_without_the_capability_are_skipped(self) -> None:
        only = _TimetableOnlyProvider()
        switcher = ProviderSwitcher([only])

        with pytest.raises(AggregatedProviderError) as exc_info:
            await switcher.resolve(Category.CANDIDATES)

        assert exc_info.value.reason == "no_providers"
        assert only.calls == 0

    @pytest.mark.asyncio
    async def test_results_links_alone_count_as_data(self) -> None:
        links = ResultData(results_links=("https://irev.inec.gov.ng",))
        switcher = ProviderSwitcher([_FakeProvider("native", links), _FakeProvider("remote")])

        result = await switcher.resolve(Category.RESULTS)

        assert result.provider_name == "native"


class TestGetAvailableProviders:
    """Tests for ProviderSwitcher.get_available_providers()."""

    def test_all_names_in_order(self) -> None:
        switcher = ProviderSwitcher([_FakeProvider("remote"), _TimetableOnlyProvider(), _FakeProvider("manual")])

        assert switcher.get_available_providers() == ["remote", "timetable_only", "manual"]
        assert switcher.get_available_providers(Category.CANDIDATES) == ["remote", "manual"]
