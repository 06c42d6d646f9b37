"""Priority scoring of enriched entries."""

from __future__ import annotations

from unlog.entry import EnrichedEntry, Level

_LEVEL_WEIGHTS = {
    Level.FATAL: 100,
    Level.ERROR: 60,
    Level.WARN: 20,
    Level.INFO: 5,
}

_WEIGHT_SPIKE = 40
_WEIGHT_CHAIN = 50
_WEIGHT_DEPLOYMENT = 30

# Bonus per doubling of the occurrence count, with the count capped.
_WEIGHT_OCCURRENCE_PER_LOG = 5
_OCCURRENCE_CAP = 20


def _ilog2(n: int) -> int:
    """Return floor(log2(n)) for positive ``n`` and 0 otherwise."""
    return n.bit_length() - 1 if n > 0 else 0


def score(entry: EnrichedEntry) -> int:
    """Return the priority of ``entry``; higher is more important."""
    total = _LEVEL_WEIGHTS.get(entry.level, 0)
    if entry.is_spike:
        total += _WEIGHT_SPIKE
    if entry.chain_id:
        total += _WEIGHT_CHAIN
    if entry.is_deployment:
        total += _WEIGHT_DEPLOYMENT

    occurrences = min(entry.occurrence_count, _OCCURRENCE_CAP)
    if occurrences > 1:
        total += _ilog2(occurrences) * _WEIGHT_OCCURRENCE_PER_LOG
    return total