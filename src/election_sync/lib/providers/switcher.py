"""Ordered provider fallback for one data category.

Providers are tried strictly one after another in configured priority
order. The first provider whose payload satisfies the category's emptiness
predicate wins and later providers are never called. An empty payload is a
soft failure (logged, not an error); an exception or timeout is recorded
and the next provider is tried.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from loguru import logger

from election_sync.lib.providers.base import (
    BaseProvider,
    CandidateProvider,
    Category,
    CategoryResult,
    ProviderError,
    ResultsProvider,
    TimetableProvider,
    candidates_have_data,
    results_have_data,
    timetables_have_data,
)


@dataclass(frozen=True)
class CategoryRoute:
    """How to fetch one category and decide whether the payload holds data."""

    interface: type[BaseProvider]
    fetch: Callable[[Any], Awaitable[CategoryResult[Any]]]
    has_data: Callable[[Any], bool]


CATEGORY_ROUTES: dict[Category, CategoryRoute] = {
    Category.TIMETABLES: CategoryRoute(
        interface=TimetableProvider,
        fetch=lambda provider: provider.fetch_timetables(),
        has_data=timetables_have_data,
    ),
    Category.CANDIDATES: CategoryRoute(
        interface=CandidateProvider,
        fetch=lambda provider: provider.fetch_candidates(),
        has_data=candidates_have_data,
    ),
    Category.RESULTS: CategoryRoute(
        interface=ResultsProvider,
        fetch=lambda provider: provider.fetch_results_links(),
        has_data=results_have_data,
    ),
}


class AggregatedProviderError(Exception):
    """Raised when no provider produced data for a category.

    Attributes:
        category: The category that could not be resolved.
        failures: Provider errors in attempt order.
        empty_providers: Names of providers that answered with an empty payload.
        reason: ``all_failed`` when at least one provider errored,
            ``no_data`` when every provider answered empty, ``no_providers``
            when no configured provider supports the category.
    """

    def __init__(
        self,
        category: Category,
        failures: Sequence[ProviderError],
        empty_providers: Sequence[str] = (),
    ) -> None:
        self.category = category
        self.failures = list(failures)
        self.empty_providers = list(empty_providers)
        if self.failures:
            self.reason = "all_failed"
            details = "; ".join(str(f) for f in self.failures)
            message = f"All providers failed for {category}: {details}"
            if self.empty_providers:
                message += f" (empty: {', '.join(self.empty_providers)})"
        elif self.empty_providers:
            self.reason = "no_data"
            message = f"No provider returned data for {category} (empty: {', '.join(self.empty_providers)})"
        else:
            self.reason = "no_providers"
            message = f"No configured provider supports {category}"
        super().__init__(message)


class ProviderSwitcher:
    """Resolves categories against an ordered provider chain.

    Args:
        providers: Providers in priority order; earlier providers win.
        call_timeout: Upper bound in seconds for one provider fetch.
    """

    def __init__(self, providers: Sequence[BaseProvider], *, call_timeout: float = 60.0) -> None:
        self._providers = list(providers)
        self._call_timeout = call_timeout

    @property
    def providers(self) -> list[BaseProvider]:
        return list(self._providers)

    def get_available_providers(self, category: Category | None = None) -> list[str]:
        """Return provider names in priority order, optionally only those supporting ``category``."""
        if category is None:
            return [p.provider_name for p in self._providers]
        interface = CATEGORY_ROUTES[category].interface
        return [p.provider_name for p in self._providers if isinstance(p, interface)]

    async def resolve(self, category: Category) -> CategoryResult[Any]:
        """Fetch ``category`` from the first provider that has data.

        Args:
            category: Category to resolve.

        Returns:
            The winning provider's CategoryResult.

        Raises:
            AggregatedProviderError: If every provider failed or returned no data.
        """
        route = CATEGORY_ROUTES[category]
        failures: list[ProviderError] = []
        empty: list[str] = []

        for provider in self._providers:
            if not isinstance(provider, route.interface):
                continue
            name = provider.provider_name
            logger.debug("Trying provider {} for {}", name, category)
            try:
                result = await asyncio.wait_for(route.fetch(provider), timeout=self._call_timeout)
            except ProviderError as exc:
                logger.warning("Provider {} failed for {}: {}", name, category, exc.message)
                failures.append(exc)
                continue
            except TimeoutError as exc:
                logger.warning("Provider {} timed out for {} after {}s", name, category, self._call_timeout)
                failures.append(ProviderError(name, f"timeout after {self._call_timeout}s", cause=exc))
                continue
            except Exception as exc:
                logger.exception("Provider {} raised unexpectedly for {}", name, category)
                failures.append(ProviderError(name, str(exc) or type(exc).__name__, cause=exc))
                continue

            if route.has_data(result.data):
                logger.info("Provider {} supplied {}", name, category)
                return result
            logger.info("Provider {} returned no {} data, trying next provider", name, category)
            empty.append(name)

        error = AggregatedProviderError(category, failures, empty)
        logger.error("{}", error)
        raise error
