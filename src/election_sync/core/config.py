"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_KNOWN_CATEGORIES = ("timetables", "candidates", "results")


def _split_csv(value: str, *, lower: bool = False) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    if not value.strip():
        return []
    items = [item.strip() for item in value.split(",") if item.strip()]
    return [item.lower() for item in items] if lower else items


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (postgresql+asyncpg or sqlite+aiosqlite)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Provider chain
    provider_fallback_order: str = Field(
        default="inec_native,inec_remote,manual",
        description="Comma-separated provider priority order; earlier providers win",
    )
    provider_call_timeout: float = Field(
        default=60.0,
        description="Upper bound in seconds for a single provider fetch, retries included",
        gt=0,
    )
    provider_max_retries: int = Field(
        default=3,
        description="Retries per upstream request before the provider reports a failure",
        ge=0,
    )
    provider_retry_base_delay: float = Field(
        default=1.0,
        description="Base delay in seconds for exponential retry backoff",
        ge=0,
    )

    @property
    def provider_fallback_order_list(self) -> list[str]:
        """Parse fallback order string into a list of provider names.

        Returns:
            List of provider names in fallback order.
        """
        return _split_csv(self.provider_fallback_order, lower=True)

    # Native INEC acquisition
    native_timetable_urls: str = Field(
        default="",
        description="Comma-separated INEC timetable URLs (JSON or HTML)",
    )
    native_candidate_urls: str = Field(
        default="",
        description="Comma-separated INEC candidate list URLs (CSV or JSON)",
    )
    native_results_urls: str = Field(
        default="",
        description="Comma-separated INEC result viewing portal links",
    )
    native_timeout: float = Field(
        default=30.0,
        description="Native provider HTTP timeout in seconds",
        gt=0,
    )

    @property
    def native_timetable_url_list(self) -> list[str]:
        return _split_csv(self.native_timetable_urls)

    @property
    def native_candidate_url_list(self) -> list[str]:
        return _split_csv(self.native_candidate_urls)

    @property
    def native_results_url_list(self) -> list[str]:
        return _split_csv(self.native_results_urls)

    # Remote mirror API
    remote_api_base: str | None = Field(
        default=None,
        description="Base URL of the remote INEC mirror API",
    )
    remote_api_key: str | None = Field(
        default=None,
        description="Bearer token for the remote mirror API",
    )
    remote_timeout: float = Field(
        default=30.0,
        description="Remote provider HTTP timeout in seconds",
        gt=0,
    )

    # Manual / static fallback
    manual_snapshot_path: str | None = Field(
        default=None,
        description="Path to the admin-curated JSON snapshot used as the last-resort provider",
    )

    # Sync orchestration
    sync_categories: str = Field(
        default="timetables,candidates,results",
        description="Comma-separated category order for full syncs",
    )
    sync_concurrent_categories: bool = Field(
        default=False,
        description="Run categories of a full sync concurrently instead of one after another",
    )
    sync_stale_run_minutes: int = Field(
        default=60,
        description="Active runs older than this are treated as abandoned and failed on the next sync",
        gt=0,
    )
    sync_staleness_hours: int = Field(
        default=24,
        description="Hours after the last completed run before a category is flagged stale",
        gt=0,
    )

    @field_validator("sync_categories")
    @classmethod
    def validate_sync_categories(cls, v: str) -> str:
        unknown = [c for c in _split_csv(v, lower=True) if c not in _KNOWN_CATEGORIES]
        if unknown:
            msg = f"Unknown sync categories: {unknown}. Expected any of {list(_KNOWN_CATEGORIES)}"
            raise ValueError(msg)
        return v

    @property
    def sync_category_list(self) -> list[str]:
        """Parse category order, dropping duplicates while keeping first occurrence."""
        return list(dict.fromkeys(_split_csv(self.sync_categories, lower=True)))

    # Field-level precedence for merged records
    precedence_rules: dict[str, list[str]] = Field(
        default_factory=dict,
        description='JSON mapping of field name to ordered source names, e.g. {"biography": ["inec_native"]}',
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return _split_csv(self.cors_origins)

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
