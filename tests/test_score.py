import dataclasses
from datetime import datetime, timezone

import pytest

from unlog.entry import EnrichedEntry, Level
from unlog.score import _ilog2, score

BASE = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_entry(level, message="msg", source="svc"):
    return EnrichedEntry(timestamp=BASE, level=level, source=source, message=message)


def test_level_ordering():
    fatal = score(make_entry(Level.FATAL, "crash"))
    error = score(make_entry(Level.ERROR, "fail"))
    warn = score(make_entry(Level.WARN, "warn"))
    info = score(make_entry(Level.INFO, "info"))
    assert fatal > error > warn > info > 0


def test_spike_adds_points():
    plain = make_entry(Level.ERROR, "fail")
    spiked = dataclasses.replace(plain, is_spike=True)
    assert score(spiked) > score(plain)


def test_chain_adds_points():
    plain = make_entry(Level.ERROR, "fail")
    chained = dataclasses.replace(plain, chain_id="db-connection-exhaustion-1")
    assert score(chained) > score(plain)


def test_deployment_adds_points():
    plain = make_entry(Level.WARN, "slow")
    deploy = dataclasses.replace(plain, is_deployment=True)
    assert score(deploy) > score(plain)


def test_occurrence_bonus():
    once = dataclasses.replace(make_entry(Level.ERROR), occurrence_count=1)
    many = dataclasses.replace(make_entry(Level.ERROR), occurrence_count=20)
    assert score(many) > score(once)


def test_occurrence_capped():
    capped = dataclasses.replace(make_entry(Level.ERROR), occurrence_count=20)
    over = dataclasses.replace(make_entry(Level.ERROR), occurrence_count=200)
    assert score(capped) == score(over)


def test_unknown_level_scores_zero():
    assert score(make_entry(Level.UNKNOWN)) == 0


@pytest.mark.parametrize(
    ("n", "want"),
    [(-1, 0), (0, 0), (1, 0), (2, 1), (3, 1), (4, 2), (8, 3), (1024, 10)],
)
def test_ilog2(n, want):
    assert _ilog2(n) == want