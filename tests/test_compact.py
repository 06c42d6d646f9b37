import dataclasses
import threading
from datetime import datetime, timedelta, timezone

import pytest

from unlog.compact import CompactOptions, _truncate_to_tokens, compact
from unlog.entry import Cancelled, EnrichedEntry, Level
from unlog.tokens import estimate_tokens

BASE = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(level, message, source, ts, **changes):
    entry = EnrichedEntry(timestamp=ts, level=level, source=source, message=message)
    return dataclasses.replace(entry, **changes)


def extract_section(text, start_header, end_header):
    start = text.find(start_header)
    if start == -1:
        return ""
    start += len(start_header)
    end = text.find(end_header, start)
    return text[start:] if end == -1 else text[start:end]


def test_empty_input():
    summary = compact([], CompactOptions())
    assert "No significant log entries found" in summary
    assert summary.endswith("## Context\n(none)")


def test_cancellation():
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        compact([make_entry(Level.ERROR, "x", "svc", BASE)], CompactOptions(), cancel)


def test_budget_compliance():
    budget = 500
    entries = [
        make_entry(
            Level.ERROR,
            "this is a long error message that consumes tokens",
            "service-alpha",
            BASE + timedelta(seconds=i),
        )
        for i in range(200)
    ]
    summary = compact(entries, CompactOptions(token_budget=budget))
    assert estimate_tokens(summary) <= budget + 50
    assert "more entries omitted" in summary


def test_priority_ordering():
    warn = make_entry(Level.WARN, "slow response", "api", BASE)
    fatal = make_entry(Level.FATAL, "process crashed", "api", BASE + timedelta(seconds=1))
    summary = compact([warn, fatal])
    fatal_index = summary.find("process crashed")
    warn_index = summary.find("slow response")
    assert fatal_index != -1
    assert warn_index != -1
    assert fatal_index < warn_index


def test_sections_present():
    entries = [
        make_entry(Level.ERROR, "db query failed", "db", BASE),
        make_entry(
            Level.ERROR,
            "connection exhausted",
            "db",
            BASE + timedelta(seconds=1),
            chain_id="db-connection-exhaustion-1",
        ),
        make_entry(
            Level.WARN, "high request rate", "api", BASE + timedelta(seconds=2), is_spike=True
        ),
        make_entry(Level.WARN, "latency elevated", "api", BASE + timedelta(seconds=3)),
    ]
    summary = compact(entries)
    for header in (
        "## Incident Overview",
        "## Critical Errors",
        "## Error Chains",
        "## Rate Anomalies",
        "## Context",
    ):
        assert header in summary


def test_chain_deduplication():
    entries = [
        make_entry(
            Level.ERROR, message, "db", BASE + timedelta(seconds=i),
            chain_id="db-connection-exhaustion-1",
        )
        for i, message in enumerate(
            ["lock timeout", "connection pool exhausted", "query failed"]
        )
    ]
    summary = compact(entries)
    section = extract_section(summary, "## Error Chains", "## Rate Anomalies")
    assert section.count("db-connection-exhaustion-1") == 1


def test_spike_in_rate_anomalies():
    spike = make_entry(Level.WARN, "error rate spike detected", "api", BASE, is_spike=True)
    summary = compact([spike])
    section = extract_section(summary, "## Rate Anomalies", "## Context")
    assert "error rate spike detected" in section


def test_deployment_flag_in_output():
    deploy = make_entry(Level.INFO, "new version deployed", "deploy", BASE, is_deployment=True)
    summary = compact([deploy])
    assert "new version deployed {deploy}" in summary


def test_large_budget_no_truncation():
    entries = [
        make_entry(Level.ERROR, "error one", "svc", BASE),
        make_entry(Level.ERROR, "error two", "svc", BASE + timedelta(seconds=1)),
    ]
    summary = compact(entries, CompactOptions(token_budget=100_000))
    assert "error one" in summary
    assert "error two" in summary
    assert "omitted" not in summary


def test_occurrence_count_annotated():
    entry = make_entry(Level.ERROR, "repeated failure", "svc", BASE, occurrence_count=42)
    assert "×42" in compact([entry])


def test_entry_line_format():
    entry = make_entry(
        Level.ERROR,
        "request failed",
        "api",
        BASE,
        http_status=500,
        error_type="Timeout",
        trace_id="abc12345",
    )
    summary = compact([entry])
    assert (
        "2025-01-01T12:00:00Z [ERROR] api: request failed "
        "{http=500 err=Timeout trace=abc12345}"
    ) in summary


def test_mutually_exclusive_sections():
    entry = make_entry(
        Level.ERROR, "chain-and-spike entry", "svc", BASE, chain_id="test-chain-1", is_spike=True
    )
    summary = compact([entry])
    chains = extract_section(summary, "## Error Chains", "## Rate Anomalies")
    critical = extract_section(summary, "## Critical Errors", "## Error Chains")
    anomalies = extract_section(summary, "## Rate Anomalies", "## Context")
    assert "chain-and-spike entry" in chains
    assert "chain-and-spike entry" not in critical
    assert "chain-and-spike entry" not in anomalies


def test_debug_trace_filtered():
    entries = [
        make_entry(Level.DEBUG, "debug noise", "svc", BASE),
        make_entry(Level.TRACE, "trace noise", "svc", BASE + timedelta(seconds=1)),
        make_entry(Level.ERROR, "real error", "svc", BASE + timedelta(seconds=2)),
    ]
    summary = compact(entries)
    assert "debug noise" not in summary
    assert "trace noise" not in summary
    assert "real error" in summary


def test_overview_content():
    entries = [
        make_entry(Level.FATAL, "crash", "app-server", BASE),
        make_entry(Level.ERROR, "timeout", "db-proxy", BASE + timedelta(seconds=30)),
        make_entry(
            Level.WARN, "spike", "api-gw", BASE + timedelta(minutes=1),
            is_spike=True, chain_id="cascade-1",
        ),
    ]
    summary = compact(entries)
    overview = extract_section(summary, "## Incident Overview", "## Critical Errors")
    assert "2025-01-01T12:00:00Z" in overview
    assert "2025-01-01T12:01:00Z" in overview
    assert "1m0s" in overview
    assert "Sources: 3" in overview
    assert "1 fatal" in overview
    assert "1 error" in overview
    assert "1 warn" in overview
    assert "cascade-1" in overview
    assert "Rate spikes: 1" in overview


def test_overview_many_sources():
    entries = [
        make_entry(Level.ERROR, "fail", f"svc-{i}", BASE + timedelta(seconds=i))
        for i in range(7)
    ]
    overview = extract_section(compact(entries), "## Incident Overview", "## Critical Errors")
    assert "Sources: 7 (svc-0, svc-1, svc-2, svc-3, svc-4, +2 more)" in overview


def test_truncate_within_budget_unchanged():
    assert _truncate_to_tokens("short", 100) == "short"


def test_truncate_empty_string():
    assert _truncate_to_tokens("", 10) == ""


def test_truncate_exactly_at_budget():
    assert _truncate_to_tokens("a" * 35, 10) == "a" * 35


def test_truncate_no_newlines():
    result = _truncate_to_tokens("x" * 200, 5)
    assert result == "x" * 17 + "\n... (truncated)"


def test_truncate_zero_budget():
    assert "... (truncated)" in _truncate_to_tokens("some text", 0)