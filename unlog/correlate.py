"""Temporal correlation of entries across sources."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from unlog.entry import ZERO_TIME, EnrichedEntry

_log = logging.getLogger(__name__)

# Cap on the buffer of recent entries, to bound memory use.
_MAX_RECENT_ENTRIES = 10_000


class Correlator:
    """Links each entry to other sources that logged within a time window."""

    def __init__(self, window: timedelta) -> None:
        self._window = window
        self._recent: list[tuple[datetime, str]] = []
        self._max_time_seen = ZERO_TIME

    def correlate(self, entry: EnrichedEntry) -> None:
        """Set ``correlated_with`` to the sorted sources seen near this entry."""
        timestamp = entry.timestamp
        if timestamp > self._max_time_seen:
            self._max_time_seen = timestamp

        self._recent = [
            (seen_at, source)
            for seen_at, source in self._recent
            if self._max_time_seen - seen_at <= self._window
        ]

        sources = {
            source
            for seen_at, source in self._recent
            if source != entry.source and abs(timestamp - seen_at) <= self._window
        }
        if sources:
            entry.correlated_with = sorted(sources)

        if len(self._recent) >= _MAX_RECENT_ENTRIES:
            dropped = len(self._recent) // 2
            _log.debug(
                "correlator buffer truncated: dropped=%d remaining=%d",
                dropped,
                len(self._recent) - dropped,
            )
            self._recent = self._recent[dropped:]
        self._recent.append((timestamp, entry.source))