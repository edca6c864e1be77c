"""Providers library — pluggable election data sources with ordered fallback.

Public API:
    - Category / parse_category: Data categories and alias resolution
    - TimetableData, CandidateData, ResultData: Normalized category payloads
    - CategoryResult: Payload plus provenance
    - TimetableProvider, CandidateProvider, ResultsProvider: Per-category interfaces
    - ProviderError: Single provider failure
    - ProviderSwitcher / AggregatedProviderError: Ordered fallback resolution
    - InecNativeProvider, InecRemoteProvider, ManualSnapshotProvider: Concrete sources
    - get_provider / register_provider: Provider factory/registry
    - get_configured_providers: Configured providers in fallback order
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from election_sync.lib.providers.base import (
    BaseProvider,
    CandidateData,
    CandidateProvider,
    Category,
    CategoryResult,
    ManualProviderConfig,
    NativeProviderConfig,
    ProviderError,
    RemoteProviderConfig,
    ResultData,
    ResultsProvider,
    RetryPolicy,
    TimetableData,
    TimetableProvider,
    parse_category,
)
from election_sync.lib.providers.manual import ManualSnapshotProvider
from election_sync.lib.providers.native import InecNativeProvider
from election_sync.lib.providers.remote import InecRemoteProvider
from election_sync.lib.providers.switcher import AggregatedProviderError, ProviderSwitcher

if TYPE_CHECKING:
    from election_sync.core.config import Settings

_PROVIDERS: dict[str, type[BaseProvider]] = {}


def get_provider(name: str, **kwargs: Any) -> BaseProvider:
    """Get a provider instance by name.

    Args:
        name: Provider name (e.g., "inec_native", "manual").
        **kwargs: Additional arguments forwarded to the provider constructor.

    Returns:
        An instance of the requested provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(name)
    if cls is None:
        msg = f"Unknown election data provider: {name!r}. Available: {list(_PROVIDERS.keys())}"
        raise ValueError(msg)
    return cls(**kwargs)


def register_provider(name: str, cls: type[BaseProvider]) -> None:
    """Register a provider class in the global registry.

    Args:
        name: Short name for the provider.
        cls: Provider class (must subclass BaseProvider).
    """
    if name in _PROVIDERS:
        logger.warning(f"Overwriting existing election data provider {name!r}")
    _PROVIDERS[name] = cls


register_provider("inec_native", InecNativeProvider)
register_provider("inec_remote", InecRemoteProvider)
register_provider("manual", ManualSnapshotProvider)


def _provider_kwargs(name: str, settings: Settings) -> dict[str, Any] | None:
    """Build constructor kwargs for a built-in provider, or None when it is not configured."""
    retry = RetryPolicy(max_retries=settings.provider_max_retries, base_delay=settings.provider_retry_base_delay)
    if name == "inec_native":
        native = NativeProviderConfig(
            timetable_urls=tuple(settings.native_timetable_url_list),
            candidate_urls=tuple(settings.native_candidate_url_list),
            results_urls=tuple(settings.native_results_url_list),
            timeout=settings.native_timeout,
            retry=retry,
        )
        return {"config": native}
    if name == "inec_remote":
        if not settings.remote_api_base:
            return None
        remote = RemoteProviderConfig(
            api_base=settings.remote_api_base,
            api_key=settings.remote_api_key,
            timeout=settings.remote_timeout,
            retry=retry,
        )
        return {"config": remote}
    if name == "manual":
        if not settings.manual_snapshot_path:
            return None
        return {"config": ManualProviderConfig(snapshot_path=settings.manual_snapshot_path)}
    return {}


def get_configured_providers(settings: Settings) -> list[BaseProvider]:
    """Get provider instances for every configured provider, in fallback order.

    Providers named in ``PROVIDER_FALLBACK_ORDER`` but lacking their required
    configuration (no URLs, no API base, no snapshot path) are skipped with a
    log message. Unknown names are skipped with a warning.

    Args:
        settings: Application settings.

    Returns:
        List of configured providers, in fallback order.
    """
    providers: list[BaseProvider] = []
    seen: set[str] = set()

    for name in settings.provider_fallback_order_list:
        if name in seen:
            continue
        seen.add(name)
        if name not in _PROVIDERS:
            logger.warning("Ignoring unknown provider {!r} in fallback order", name)
            continue
        kwargs = _provider_kwargs(name, settings)
        if kwargs is None:
            logger.info("Provider {} is not configured, skipping", name)
            continue
        try:
            provider = get_provider(name, **kwargs)
        except (ValueError, TypeError) as exc:
            logger.warning("Could not construct provider {}: {}", name, exc)
            continue
        if provider.is_configured:
            providers.append(provider)
        else:
            logger.info("Provider {} is not configured, skipping", name)

    return providers


__all__ = [
    "AggregatedProviderError",
    "BaseProvider",
    "CandidateData",
    "CandidateProvider",
    "Category",
    "CategoryResult",
    "InecNativeProvider",
    "InecRemoteProvider",
    "ManualSnapshotProvider",
    "ProviderError",
    "ProviderSwitcher",
    "ResultData",
    "ResultsProvider",
    "TimetableData",
    "TimetableProvider",
    "get_configured_providers",
    "get_provider",
    "parse_category",
    "register_provider",
]
