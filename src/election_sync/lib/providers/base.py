"""Abstract provider interfaces and normalized election payloads.

Every upstream source normalizes its raw responses into the record
dataclasses below so the switcher, merger and record store never see
provider-specific shapes.
"""

import asyncio
import enum
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, TypeVar

from loguru import logger

from election_sync.lib.providers.normalize import normalize_full_name, normalize_party_code


class Category(enum.StrEnum):
    """Data category synchronized as one unit."""

    TIMETABLES = "timetables"
    CANDIDATES = "candidates"
    RESULTS = "results"


# Names accepted from external callers in addition to the canonical values
CATEGORY_ALIASES: dict[str, Category] = {
    "elections": Category.TIMETABLES,
    "results_links": Category.RESULTS,
}


def parse_category(value: str) -> Category:
    """Resolve a category name or alias to a Category.

    Args:
        value: Category name, case-insensitive (e.g. "candidates", "elections").

    Returns:
        The matching Category.

    Raises:
        ValueError: If the name is not a known category or alias.
    """
    name = value.strip().lower()
    if name in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[name]
    try:
        return Category(name)
    except ValueError:
        valid = [c.value for c in Category] + list(CATEGORY_ALIASES)
        msg = f"Unknown sync category: {value!r}. Expected one of {valid}"
        raise ValueError(msg) from None


# ---------------------------------------------------------------------------
# Normalized records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ElectionRecord:
    """An election on the timetable."""

    record_type: ClassVar[str] = "election"

    name: str
    scope: str = "general"
    status: str = "upcoming"
    state_code: str | None = None
    lga_code: str | None = None
    ward_code: str | None = None
    date_start: str | None = None
    date_end: str | None = None
    source_url: str = ""
    source_hash: str = ""

    def record_key(self) -> str:
        return "|".join((self.name.strip().lower(), self.scope, self.state_code or "", self.date_start or ""))


@dataclass(frozen=True)
class DeadlineRecord:
    """A statutory deadline attached to an election (registration, campaign end, ...)."""

    record_type: ClassVar[str] = "deadline"

    election_id: str
    kind: str
    due_at: str
    source_url: str = ""

    def record_key(self) -> str:
        return "|".join((self.election_id, self.kind))


@dataclass(frozen=True)
class RaceRecord:
    """An office being contested within an election."""

    record_type: ClassVar[str] = "race"

    election_id: str
    office: str
    district: str | None = None
    seats: int = 1
    source_url: str = ""

    def record_key(self) -> str:
        return "|".join((self.election_id, self.office.strip().lower(), (self.district or "").lower()))


@dataclass(frozen=True)
class CandidateRecord:
    """A candidate standing in a race."""

    record_type: ClassVar[str] = "candidate"

    race_id: str
    full_name: str
    party: str | None = None
    inec_verified: bool = False
    photo_url: str | None = None
    manifesto_url: str | None = None
    biography: str | None = None
    source_url: str = ""

    def record_key(self) -> str:
        party = normalize_party_code(self.party) if self.party else ""
        return "|".join((self.race_id, normalize_full_name(self.full_name), party))


@dataclass(frozen=True)
class ResultRecord:
    """Votes for one party at one polling unit."""

    record_type: ClassVar[str] = "result"

    election_id: str
    race_id: str
    pu_code: str
    party: str
    votes: int
    source_url: str = ""
    captured_at: str | None = None

    def record_key(self) -> str:
        return "|".join((self.election_id, self.race_id, self.pu_code, self.party.upper()))


@dataclass(frozen=True)
class ResultsLinkRecord:
    """A link to an official result viewing portal."""

    record_type: ClassVar[str] = "results_link"

    url: str

    def record_key(self) -> str:
        return self.url


NormalizedRecord = ElectionRecord | DeadlineRecord | RaceRecord | CandidateRecord | ResultRecord | ResultsLinkRecord


def record_fields(record: NormalizedRecord) -> dict[str, Any]:
    """Return the record's fields as a plain dict suitable for JSON storage."""
    return asdict(record)


# ---------------------------------------------------------------------------
# Category payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimetableData:
    """Timetable payload: elections and their deadlines."""

    elections: tuple[ElectionRecord, ...] = ()
    deadlines: tuple[DeadlineRecord, ...] = ()

    def iter_records(self) -> Iterator[NormalizedRecord]:
        yield from self.elections
        yield from self.deadlines


@dataclass(frozen=True)
class CandidateData:
    """Candidate payload: races and the candidates contesting them."""

    races: tuple[RaceRecord, ...] = ()
    candidates: tuple[CandidateRecord, ...] = ()

    def iter_records(self) -> Iterator[NormalizedRecord]:
        yield from self.races
        yield from self.candidates


@dataclass(frozen=True)
class ResultData:
    """Results payload: per-unit result rows and result portal links."""

    results: tuple[ResultRecord, ...] = ()
    results_links: tuple[str, ...] = ()

    def iter_records(self) -> Iterator[NormalizedRecord]:
        yield from self.results
        for url in self.results_links:
            yield ResultsLinkRecord(url=url)


def timetables_have_data(data: TimetableData) -> bool:
    """A timetable payload counts as data when it lists at least one election."""
    return len(data.elections) > 0


def candidates_have_data(data: CandidateData) -> bool:
    """A candidate payload counts as data when it lists at least one candidate."""
    return len(data.candidates) > 0


def results_have_data(data: ResultData) -> bool:
    """A results payload counts as data when it has a result row or a results link."""
    return len(data.results) > 0 or len(data.results_links) > 0


T = TypeVar("T", TimetableData, CandidateData, ResultData)


@dataclass(frozen=True)
class CategoryResult(Generic[T]):
    """Normalized payload for one category plus where and when it was fetched."""

    category: Category
    data: T
    provider_name: str
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


# ---------------------------------------------------------------------------
# Provider configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for upstream requests.

    Delays grow by a factor of two per attempt, or three when the upstream
    is rate limiting (HTTP 429).
    """

    max_retries: int = 3
    base_delay: float = 1.0

    def delay_for(self, attempt: int, *, rate_limited: bool) -> float:
        factor = 3 if rate_limited else 2
        return self.base_delay * factor**attempt


@dataclass(frozen=True)
class NativeProviderConfig:
    """Direct INEC acquisition: lists of published document URLs."""

    timetable_urls: tuple[str, ...] = ()
    candidate_urls: tuple[str, ...] = ()
    results_urls: tuple[str, ...] = ()
    timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class RemoteProviderConfig:
    """Remote mirror REST API."""

    api_base: str
    api_key: str | None = None
    timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class ManualProviderConfig:
    """Admin-curated JSON snapshot on local disk."""

    snapshot_path: str


# ---------------------------------------------------------------------------
# Errors and interfaces
# ---------------------------------------------------------------------------


class ProviderError(Exception):
    """Raised when a provider call fails (transport, upstream or parse error).

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the upstream.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(f"{provider_name}: {message}")

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def retryable(self) -> bool:
        """Transport errors, rate limiting and 5xx responses are worth retrying."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class BaseProvider(ABC):
    """Common behaviour for all election data providers.

    Providers are stateless across calls: every fetch goes to the upstream
    and returns a fresh CategoryResult. They never write to the database.
    """

    retry_policy: RetryPolicy = RetryPolicy()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique short name for this provider (e.g. 'inec_native')."""

    @property
    def is_configured(self) -> bool:
        """Whether the provider has the configuration it needs to be used."""
        return True

    async def close(self) -> None:  # noqa: B027
        """Release any held resources. Default is a no-op."""

    def _result(self, category: Category, data: T) -> CategoryResult[T]:
        return CategoryResult(category=category, data=data, provider_name=self.provider_name)

    async def _with_retries(self, operation: Callable[[], Awaitable[Any]], *, description: str) -> Any:
        """Run an upstream operation, retrying retryable ProviderErrors with backoff.

        Args:
            operation: Zero-argument coroutine function performing one attempt.
            description: Short label used in log messages (e.g. a URL or path).

        Returns:
            The operation's return value.

        Raises:
            ProviderError: The last error once retries are exhausted, or the
                first non-retryable error.
        """
        policy = self.retry_policy
        attempt = 0
        while True:
            try:
                return await operation()
            except ProviderError as exc:
                if attempt >= policy.max_retries or not exc.retryable:
                    raise
                delay = policy.delay_for(attempt, rate_limited=exc.rate_limited)
                logger.debug(
                    "{} attempt {} for {} failed ({}); retrying in {:.2f}s",
                    self.provider_name,
                    attempt + 1,
                    description,
                    exc.message,
                    delay,
                )
                attempt += 1
                await asyncio.sleep(delay)


class TimetableProvider(BaseProvider):
    """A provider that can supply election timetables."""

    @abstractmethod
    async def fetch_timetables(self) -> CategoryResult[TimetableData]:
        """Fetch elections and deadlines.

        Raises:
            ProviderError: If the upstream cannot be read.
        """


class CandidateProvider(BaseProvider):
    """A provider that can supply races and candidates."""

    @abstractmethod
    async def fetch_candidates(self) -> CategoryResult[CandidateData]:
        """Fetch races and candidates.

        Raises:
            ProviderError: If the upstream cannot be read.
        """


class ResultsProvider(BaseProvider):
    """A provider that can supply result rows and result portal links."""

    @abstractmethod
    async def fetch_results_links(self) -> CategoryResult[ResultData]:
        """Fetch results and result portal links.

        Raises:
            ProviderError: If the upstream cannot be read.
        """
