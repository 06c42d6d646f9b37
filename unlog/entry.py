"""Log entry model shared by the enrichment and compaction stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum

# Timestamp used for entries whose time is unknown.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class Level(IntEnum):
    """Log severity, ordered from least to most severe."""

    UNKNOWN = 0
    TRACE = 1
    DEBUG = 2
    INFO = 3
    WARN = 4
    ERROR = 5
    FATAL = 6

    def __str__(self) -> str:
        return self.name

    def meets(self, minimum: Level) -> bool:
        """Return True if this level is at least as severe as ``minimum``."""
        return self >= minimum


class Cancelled(Exception):
    """Raised when a stage is cancelled before its input is exhausted."""


@dataclass
class EnrichedEntry:
    """A parsed, filtered log entry together with the signals added to it."""

    timestamp: datetime = ZERO_TIME
    level: Level = Level.UNKNOWN
    source: str = ""
    message: str = ""
    line_number: int = 0
    metadata: dict[str, str] = field(default_factory=dict)

    occurrence_count: int = 1
    is_spike: bool = False
    signature: str = ""
    is_dedup_summary: bool = False

    chain_id: str | None = None
    is_deployment: bool = False
    http_status: int | None = None
    error_type: str | None = None
    trace_id: str | None = None
    correlated_with: list[str] = field(default_factory=list)