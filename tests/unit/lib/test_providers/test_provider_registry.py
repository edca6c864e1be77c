"""Unit tests for the election data provider registry."""

from pathlib import Path
from unittest.mock import patch

import pytest

from election_sync.core.config import Settings
from election_sync.lib.providers import (
    _PROVIDERS,
    InecNativeProvider,
    InecRemoteProvider,
    ManualSnapshotProvider,
    get_configured_providers,
    get_provider,
    register_provider,
)
from election_sync.lib.providers.base import Category, CategoryResult, TimetableData, TimetableProvider


class _StubProvider(TimetableProvider):
    """Stub provider for testing the registry."""

    @property
    def provider_name(self) -> str:
        return "stub"

    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        return self._result(Category.TIMETABLES, TimetableData())


class _StubProvider2(_StubProvider):
    """Second stub provider for overwrite test."""

    @property
    def provider_name(self) -> str:
        return "stub2"


class TestProviderRegistry:
    """Tests for get_provider / register_provider."""

    def test_unknown_provider_raises(self) -> None:
        """Requesting an unregistered provider raises ValueError."""
        with pytest.raises(ValueError, match="Unknown election data provider"):
            get_provider("nonexistent_provider")

    def test_builtin_providers_are_registered(self) -> None:
        assert _PROVIDERS["inec_native"] is InecNativeProvider
        assert _PROVIDERS["inec_remote"] is InecRemoteProvider
        assert _PROVIDERS["manual"] is ManualSnapshotProvider

    def test_register_and_get(self) -> None:
        """Registering a provider makes it retrievable."""
        with patch.dict(_PROVIDERS):
            register_provider("stub", _StubProvider)
            provider = get_provider("stub")
        assert provider.provider_name == "stub"

    def test_register_overwrites_with_warning(self) -> None:
        """Re-registering a provider logs a warning."""
        with patch.dict(_PROVIDERS):
            register_provider("overwrite_test", _StubProvider)
            with patch("election_sync.lib.providers.logger") as mock_logger:
                register_provider("overwrite_test", _StubProvider2)
                mock_logger.warning.assert_called_once()
                assert "overwrite_test" in mock_logger.warning.call_args[0][0]
            provider = get_provider("overwrite_test")
        assert provider.provider_name == "stub2"


class TestGetConfiguredProviders:
    """Tests for get_configured_providers()."""

    def test_nothing_configured(self, settings: Settings) -> None:
        assert get_configured_providers(settings) == []

    @pytest.mark.asyncio
    async def test_follows_fallback_order_and_skips_unconfigured(self, settings: Settings, tmp_path: Path) -> None:
        snapshot = tmp_path / "snapshot.json"
        snapshot.write_text("{}", encoding="utf-8")
        configured = settings.model_copy(
            update={
                "provider_fallback_order": "manual, inec_remote, inec_native, bogus, manual",
                "remote_api_base": "https://mirror.example.ng/api",
                "manual_snapshot_path": str(snapshot),
            }
        )

        providers = get_configured_providers(configured)

        assert [p.provider_name for p in providers] == ["manual", "inec_remote"]
        for provider in providers:
            await provider.close()

    def test_native_with_urls(self, settings: Settings) -> None:
        configured = settings.model_copy(update={"native_timetable_urls": "https://inec.gov.ng/timetable.json"})

        (provider,) = get_configured_providers(configured)

        assert isinstance(provider, InecNativeProvider)
        assert provider.retry_policy.base_delay == 0
