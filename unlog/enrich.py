"""Enrichment stage: adds fields, deployment flags, chains and correlations."""

from __future__ import annotations

import dataclasses
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import timedelta

from unlog.chains import ChainMatcher
from unlog.correlate import Correlator
from unlog.deploy import DeployDetector
from unlog.entry import Cancelled, EnrichedEntry
from unlog.fields import FieldExtractor


@dataclass(frozen=True)
class EnrichOptions:
    """Settings for the enrichment stage."""

    correlation_window: timedelta = timedelta(seconds=5)


class Enricher:
    """Runs every enrichment step over a stream of entries."""

    def __init__(self, options: EnrichOptions | None = None) -> None:
        options = options or EnrichOptions()
        self._fields = FieldExtractor()
        self._deploy = DeployDetector()
        self._chains = ChainMatcher()
        self._correlator = Correlator(options.correlation_window)

    def enrich(self, entry: EnrichedEntry) -> EnrichedEntry:
        """Return an enriched copy of ``entry``."""
        enriched = dataclasses.replace(entry)
        self._fields.extract(enriched)
        self._deploy.detect(enriched)
        if not enriched.is_dedup_summary:
            enriched.chain_id = self._chains.match(enriched)
            self._correlator.correlate(enriched)
        return enriched

    def run(
        self,
        entries: Iterable[EnrichedEntry],
        cancel: threading.Event | None = None,
    ) -> Iterator[EnrichedEntry]:
        """Yield enriched entries; raise ``Cancelled`` once ``cancel`` is set."""
        _check_cancelled(cancel)
        for entry in entries:
            _check_cancelled(cancel)
            yield self.enrich(entry)


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise Cancelled("enrichment cancelled")