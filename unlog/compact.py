"""Compaction stage: scores entries and writes a token-budgeted summary."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from unlog.entry import ZERO_TIME, Cancelled, EnrichedEntry, Level
from unlog.score import score
from unlog.tokens import estimate_tokens

_log = logging.getLogger(__name__)

DEFAULT_TOKEN_BUDGET = 8_192

# Fractions of the token budget given to each section; they sum to 1.
_BUDGET_OVERVIEW = 0.05
_BUDGET_CRITICAL = 0.45
_BUDGET_CHAINS = 0.20
_BUDGET_ANOMALIES = 0.10
_BUDGET_CONTEXT = 0.20

_SECTION_OVERVIEW = "Incident Overview"
_SECTION_CRITICAL = "Critical Errors"
_SECTION_CHAINS = "Error Chains"
_SECTION_ANOMALIES = "Rate Anomalies"
_SECTION_CONTEXT = "Context"

# Approximate token cost of a "## Section Name" header line.
_HEADER_TOKENS = 5

_MAX_LISTED_SOURCES = 5

_SEVERE = (Level.FATAL, Level.ERROR)
_CONTEXT_LEVELS = (Level.WARN, Level.INFO)

_EMPTY_SUMMARY = (
    "## Incident Overview\nNo significant log entries found.\n\n"
    "## Critical Errors\n(none)\n\n"
    "## Error Chains\n(none)\n\n"
    "## Rate Anomalies\n(none)\n\n"
    "## Context\n(none)"
)


@dataclass(frozen=True)
class CompactOptions:
    """Settings for the compaction stage; a non-positive budget means the default."""

    token_budget: int = DEFAULT_TOKEN_BUDGET


@dataclass(frozen=True)
class _Scored:
    entry: EnrichedEntry
    score: int


def compact(
    entries: Iterable[EnrichedEntry],
    options: CompactOptions | None = None,
    cancel: threading.Event | None = None,
) -> str:
    """Score ``entries`` and return a sectioned text summary within the token budget.

    Entries below INFO are dropped. Raises ``Cancelled`` once ``cancel`` is set.
    """
    options = options or CompactOptions()
    budget = options.token_budget if options.token_budget > 0 else DEFAULT_TOKEN_BUDGET

    _check_cancelled(cancel)
    scored: list[_Scored] = []
    for entry in entries:
        _check_cancelled(cancel)
        if entry.level < Level.INFO:
            continue
        scored.append(_Scored(entry, score(entry)))
    _log.debug("collected entries: count=%d", len(scored))

    if not scored:
        return _EMPTY_SUMMARY

    scored.sort(key=lambda item: (-item.score, item.entry.timestamp))
    summary = _format_summary(scored, budget)
    _log.debug(
        "summary generated: entries_in=%d estimated_tokens=%d budget=%d",
        len(scored),
        estimate_tokens(summary),
        budget,
    )
    return summary


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise Cancelled("compaction cancelled")


def _format_summary(scored: list[_Scored], token_budget: int) -> str:
    """Build the summary; each entry lands in at most one entry section.

    Claim order: Error Chains, Rate Anomalies, Critical Errors, Context.
    """
    claimed: set[int] = set()

    chains_raw = []
    for index, item in enumerate(scored):
        if item.entry.chain_id and item.entry.level in _SEVERE:
            chains_raw.append(item)
            claimed.add(index)
    chains = _deduplicate_by_chain(chains_raw)

    anomalies = []
    for index, item in enumerate(scored):
        if index not in claimed and item.entry.is_spike:
            anomalies.append(item)
            claimed.add(index)

    criticals = []
    for index, item in enumerate(scored):
        if index not in claimed and item.entry.level in _SEVERE:
            criticals.append(item)
            claimed.add(index)

    context = [
        item
        for index, item in enumerate(scored)
        if index not in claimed and item.entry.level in _CONTEXT_LEVELS
    ]

    overview = _truncate_to_tokens(
        _build_overview(scored), _section_budget(token_budget, _BUDGET_OVERVIEW)
    )
    sections = [
        _text_section(_SECTION_OVERVIEW, overview),
        _entries_section(_SECTION_CRITICAL, criticals, _section_budget(token_budget, _BUDGET_CRITICAL)),
        _entries_section(_SECTION_CHAINS, chains, _section_budget(token_budget, _BUDGET_CHAINS)),
        _entries_section(_SECTION_ANOMALIES, anomalies, _section_budget(token_budget, _BUDGET_ANOMALIES)),
        _entries_section(_SECTION_CONTEXT, context, _section_budget(token_budget, _BUDGET_CONTEXT)),
    ]
    return "".join(sections).rstrip("\n")


def _section_budget(total: int, fraction: float) -> int:
    return max(int(total * fraction) - _HEADER_TOKENS, 0)


def _utc_stamp(moment: datetime) -> str:
    utc = moment.astimezone(timezone.utc)
    return (
        f"{utc.year:04d}-{utc.month:02d}-{utc.day:02d}"
        f"T{utc.hour:02d}:{utc.minute:02d}:{utc.second:02d}Z"
    )


def _format_duration(span: timedelta) -> str:
    """Render ``span`` rounded to whole seconds, e.g. ``1h2m3s``, ``1m0s``, ``0s``."""
    micros = (span.days * 86_400 + span.seconds) * 1_000_000 + span.microseconds
    negative = micros < 0
    seconds = (abs(micros) + 500_000) // 1_000_000
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        text = f"{hours}h{minutes}m{secs}s"
    elif minutes:
        text = f"{minutes}m{secs}s"
    else:
        text = f"{secs}s"
    return f"-{text}" if negative and seconds else text


def _build_overview(scored: list[_Scored]) -> str:
    if not scored:
        return "No significant log entries found."

    earliest: datetime | None = None
    latest: datetime | None = None
    counts = {Level.FATAL: 0, Level.ERROR: 0, Level.WARN: 0}
    sources: set[str] = set()
    chain_ids: dict[str, None] = {}
    spikes = 0

    for item in scored:
        entry = item.entry
        moment = entry.timestamp
        if moment == ZERO_TIME:
            continue
        if earliest is None or moment < earliest:
            earliest = moment
        if latest is None or moment > latest:
            latest = moment
        if entry.level in counts:
            counts[entry.level] += 1
        if entry.source:
            sources.add(entry.source)
        if entry.chain_id:
            chain_ids.setdefault(entry.chain_id, None)
        if entry.is_spike:
            spikes += 1

    earliest = earliest or ZERO_TIME
    latest = latest or ZERO_TIME

    parts = [
        f"Window: {_utc_stamp(earliest)} — {_utc_stamp(latest)} "
        f"({_format_duration(latest - earliest)})",
        f"Sources: {len(sources)} ({_joined_sources(sources)})",
        f"Events: {counts[Level.FATAL]} fatal, {counts[Level.ERROR]} error, "
        f"{counts[Level.WARN]} warn",
    ]
    if chain_ids:
        parts.append(f"Error chains detected: {', '.join(chain_ids)}")
    if spikes:
        parts.append(f"Rate spikes: {spikes}")
    return "\n".join(parts)


def _joined_sources(sources: set[str]) -> str:
    names = sorted(sources)
    if len(names) > _MAX_LISTED_SOURCES:
        shown = ", ".join(names[:_MAX_LISTED_SOURCES])
        return f"{shown}, +{len(names) - _MAX_LISTED_SOURCES} more"
    return ", ".join(names)


def _text_section(title: str, body: str) -> str:
    return f"## {title}\n" + (f"{body}\n" if body else "") + "\n"


def _entries_section(title: str, entries: list[_Scored], token_budget: int) -> str:
    parts = [f"## {title}\n"]
    if not entries:
        parts.append("(none)\n\n")
        return "".join(parts)

    used = 0
    for written, item in enumerate(entries):
        line = _format_entry(item.entry)
        tokens = estimate_tokens(line)
        if used + tokens > token_budget and written > 0:
            parts.append(f"... ({len(entries) - written} more entries omitted)\n")
            break
        parts.append(f"{line}\n")
        used += tokens
    parts.append("\n")
    return "".join(parts)


def _format_entry(entry: EnrichedEntry) -> str:
    text = f"{_utc_stamp(entry.timestamp)} [{entry.level}] "
    if entry.source:
        text += f"{entry.source}: "
    text += entry.message

    tags = []
    if entry.chain_id:
        tags.append(f"chain={entry.chain_id}")
    if entry.is_deployment:
        tags.append("deploy")
    if entry.is_spike:
        tags.append("spike")
    if entry.occurrence_count > 1:
        tags.append(f"×{entry.occurrence_count}")
    if entry.http_status and entry.http_status > 0:
        tags.append(f"http={entry.http_status}")
    if entry.error_type:
        tags.append(f"err={entry.error_type}")
    if entry.trace_id:
        tags.append(f"trace={entry.trace_id}")

    if tags:
        text += " {" + " ".join(tags) + "}"
    return text


def _deduplicate_by_chain(entries: list[_Scored]) -> list[_Scored]:
    """Keep one entry per chain ID (the highest scored), in first-seen order."""
    best: dict[str, _Scored] = {}
    for item in entries:
        chain_id = item.entry.chain_id
        if not chain_id:
            continue
        existing = best.get(chain_id)
        if existing is None or item.score > existing.score:
            best[chain_id] = item

    result = []
    seen: set[str] = set()
    for item in entries:
        chain_id = item.entry.chain_id
        if not chain_id:
            result.append(item)
        elif chain_id not in seen:
            seen.add(chain_id)
            result.append(best[chain_id])
    return result


def _truncate_to_tokens(text: str, budget: int) -> str:
    """Cut ``text`` to roughly ``budget`` tokens, preferring a line boundary."""
    if estimate_tokens(text) <= budget:
        return text
    raw = text.encode("utf-8")
    target = budget * 7 // 2
    if target >= len(raw):
        return text
    cut = raw[:target]
    newline = cut.rfind(b"\n")
    if newline > 0:
        cut = cut[:newline]
    return cut.decode("utf-8", errors="ignore") + "\n... (truncated)"