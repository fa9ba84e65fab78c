"""
Catalog Contracts

Immutable data structures shared by every layer of the catalog.

BOUNDARY:
=========
All remote and bundled data enters through these contracts.
Records are replaced wholesale on each sync, never mutated in place.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional, Tuple
from enum import Enum, auto
import re


# =============================================================================
# ENUMS
# =============================================================================

class Dataset(Enum):
    """Datasets persisted by the catalog."""
    SUBSTANCES = "substances"
    INTERACTIONS = "interactions"
    DEFINITIONS = "definitions"


class SyncState(Enum):
    """Where the currently served snapshot came from."""
    BOOTSTRAPPED = "bootstrapped"  # Bundled read-only asset
    CACHED = "cached"              # Persisted cache record
    FRESH = "fresh"                # Just-completed network fetch


class FetchStatus(Enum):
    """Status of a fetch attempt."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    NETWORK_ERROR = "network_error"


class DurationUnit(Enum):
    MINUTES = "minutes"
    HOURS = "hours"


class PhaseName(Enum):
    ONSET = "onset"
    PEAK = "peak"
    AFTER_EFFECTS = "after_effects"


class StatusCode(Enum):
    """
    Closed taxonomy of interaction statuses.

    Source data spells these inconsistently ("Caution", "caution",
    "Low Risk & Synergy"); `from_text` is the single normalization step.
    """
    LOW_RISK_NO_SYNERGY = "low_risk_no_synergy"
    LOW_RISK_DECREASE = "low_risk_decrease"
    LOW_RISK_SYNERGY = "low_risk_synergy"
    CAUTION = "caution"
    UNSAFE = "unsafe"
    DANGEROUS = "dangerous"
    UNKNOWN = "unknown"

    @classmethod
    def from_text(cls, text: Optional[str]) -> StatusCode:
        """Normalize free status text; unrecognized text maps to UNKNOWN."""
        if isinstance(text, StatusCode):
            return text
        if not text or not isinstance(text, str):
            return cls.UNKNOWN
        key = re.sub(r'[^a-z0-9]+', '_', text.lower()).strip('_')
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN

    @property
    def severity(self) -> int:
        """Rank used when two source entries disagree about one pair."""
        return _SEVERITY[self]


_SEVERITY = {
    StatusCode.UNKNOWN: -1,
    StatusCode.LOW_RISK_NO_SYNERGY: 0,
    StatusCode.LOW_RISK_DECREASE: 1,
    StatusCode.LOW_RISK_SYNERGY: 1,
    StatusCode.CAUTION: 2,
    StatusCode.UNSAFE: 3,
    StatusCode.DANGEROUS: 4,
}


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for catalog failures.
    Every error state is enumerated; absence of data is not among them.
    """
    # Parsing
    MALFORMED_DURATION = auto()
    MALFORMED_PAYLOAD = auto()

    # Storage
    STORAGE_UNAVAILABLE = auto()
    STORAGE_CORRUPT = auto()
    SERIALIZATION_FAILED = auto()

    # Sync
    NETWORK_UNREACHABLE = auto()
    TIMEOUT = auto()
    HTTP_ERROR = auto()
    CANCELLED = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be logged and displayed.
    """
    code: ErrorCode
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[Any] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: Any) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


class CatalogError(Exception):
    """Base for exceptions raised inside the catalog and converted to Error."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_error(self) -> Error:
        return Error(code=self.code, message=self.message)


class ParseError(CatalogError):
    """Raised when a duration or remote payload cannot be parsed."""


class StoreError(CatalogError):
    """Raised when the persisted cache cannot be read or written."""


# =============================================================================
# SUBSTANCE CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class Citation:
    author: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Substance:
    """
    One catalog entry.

    `dose_table`, `effects`, `links`, `sources`, `properties` and `combos`
    are passed through untouched for presentation layers.
    """
    name: str
    display_name: str
    aliases: FrozenSet[str] = frozenset()
    categories: Tuple[str, ...] = ()
    summary: str = ""

    # Free-text durations, e.g. "20-40 minutes"
    onset: Optional[str] = None
    duration: Optional[str] = None
    after_effects: Optional[str] = None

    # Pass-through
    dose_table: Mapping[str, Any] = field(default_factory=dict, compare=False)
    effects: Tuple[str, ...] = ()
    links: Mapping[str, Any] = field(default_factory=dict, compare=False)
    sources: Mapping[str, Any] = field(default_factory=dict, compare=False)
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)
    combos: Mapping[str, Any] = field(default_factory=dict, compare=False)


# =============================================================================
# INTERACTION CONTRACTS
# =============================================================================

def pair_key(a: str, b: str) -> Tuple[str, str]:
    """Canonical, order-independent key for a substance pair."""
    first = a.strip().lower()
    second = b.strip().lower()
    return (first, second) if first <= second else (second, first)


@dataclass(frozen=True)
class InteractionEntry:
    """Documented interaction for an unordered pair (stored with a <= b)."""
    a: str
    b: str
    status: StatusCode
    raw_status: str = ""
    note: Optional[str] = None
    sources: Tuple[Citation, ...] = ()

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.a, self.b)

    def partner_of(self, name: str) -> str:
        key = name.strip().lower()
        return self.b if key == self.a else self.a


@dataclass(frozen=True)
class StatusDefinition:
    status: StatusCode
    label: str
    definition: str
    emoji: str = ""
    color: str = ""


@dataclass(frozen=True)
class InteractionTable:
    """Read-only interaction lookup keyed by `pair_key`."""
    entries: Mapping[Tuple[str, str], InteractionEntry] = field(default_factory=dict)

    def get(self, a: str, b: str) -> Optional[InteractionEntry]:
        return self.entries.get(pair_key(a, b))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[InteractionEntry]:
        return iter(self.entries.values())


@dataclass(frozen=True)
class DefinitionTable:
    """Read-only status definition lookup."""
    definitions: Mapping[StatusCode, StatusDefinition] = field(default_factory=dict)

    def get(self, status: StatusCode) -> Optional[StatusDefinition]:
        return self.definitions.get(status)

    def __len__(self) -> int:
        return len(self.definitions)


# =============================================================================
# DURATION / TIMELINE CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class DurationRange:
    """
    Parsed duration. Invariant: 0 <= min <= max.
    A zero range means "data unavailable".
    """
    min: float
    max: float
    unit: DurationUnit = DurationUnit.MINUTES

    def __post_init__(self):
        if self.min < 0 or self.max < 0:
            raise ValueError("DurationRange bounds must be non-negative")
        if self.min > self.max:
            raise ValueError("DurationRange min must not exceed max")

    @property
    def _factor(self) -> float:
        return 60.0 if self.unit == DurationUnit.HOURS else 1.0

    @property
    def min_minutes(self) -> float:
        return self.min * self._factor

    @property
    def max_minutes(self) -> float:
        return self.max * self._factor

    @property
    def avg(self) -> float:
        """Mean of the range, in minutes."""
        return (self.min_minutes + self.max_minutes) / 2

    @property
    def is_zero(self) -> bool:
        return self.max == 0


ZERO_DURATION = DurationRange(0.0, 0.0, DurationUnit.MINUTES)


@dataclass(frozen=True)
class TimelinePhase:
    name: PhaseName
    range: DurationRange
    start_minutes: float
    end_minutes: float

    @property
    def length_minutes(self) -> float:
        return self.end_minutes - self.start_minutes


@dataclass(frozen=True)
class IntensitySample:
    offset_minutes: float
    intensity: float  # 0-100


@dataclass(frozen=True)
class Timeline:
    """Derived report value; recomputed on demand, never persisted."""
    phases: Tuple[TimelinePhase, TimelinePhase, TimelinePhase]
    samples: Tuple[IntensitySample, ...]
    total_minutes: float
    sampled_minutes: float
    axis_labels: Tuple[str, ...]

    def phase(self, name: PhaseName) -> TimelinePhase:
        for phase in self.phases:
            if phase.name == name:
                return phase
        raise KeyError(name)


# =============================================================================
# CACHE / SYNC CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class CacheRecord:
    """Persisted dataset payload (raw JSON-compatible value as fetched)."""
    dataset: Dataset
    payload: Any
    last_synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class Snapshot:
    """Parsed dataset as currently served to readers."""
    dataset: Dataset
    data: Any
    state: SyncState
    last_synced_at: Optional[datetime] = None

    @property
    def is_stale(self) -> bool:
        return self.state != SyncState.FRESH


@dataclass(frozen=True)
class FetchResult:
    """
    Result of a fetch attempt (success or failure).

    Failed fetches are FIRST-CLASS outputs, not exceptions.
    """
    url: str
    attempted_at: datetime
    completed_at: datetime
    status: FetchStatus

    # On success
    payload: Any = None

    # On failure
    error_message: Optional[str] = None
    http_status: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def duration_ms(self) -> float:
        return (self.completed_at - self.attempted_at).total_seconds() * 1000

    def to_error(self) -> Error:
        code = _FETCH_ERROR_CODES.get(self.status, ErrorCode.NETWORK_UNREACHABLE)
        error = Error(code=code, message=self.error_message or self.status.value)
        error = error.with_context('url', self.url)
        if self.http_status is not None:
            error = error.with_context('http_status', str(self.http_status))
        return error


_FETCH_ERROR_CODES: Dict[FetchStatus, ErrorCode] = {
    FetchStatus.TIMEOUT: ErrorCode.TIMEOUT,
    FetchStatus.HTTP_ERROR: ErrorCode.HTTP_ERROR,
    FetchStatus.PARSE_ERROR: ErrorCode.MALFORMED_PAYLOAD,
    FetchStatus.NETWORK_ERROR: ErrorCode.NETWORK_UNREACHABLE,
}
