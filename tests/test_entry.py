from itertools import combinations

import pytest

from unlog.entry import ZERO_TIME, EnrichedEntry, Level

SEVERITY_ORDER = [
    Level.TRACE,
    Level.DEBUG,
    Level.INFO,
    Level.WARN,
    Level.ERROR,
    Level.FATAL,
]


@pytest.mark.parametrize("lower, higher", list(combinations(SEVERITY_ORDER, 2)))
def test_levels_are_ordered_by_severity(lower, higher):
    assert Level.meets(higher, lower) is True
    assert Level.meets(lower, higher) is False


def test_warn_level_value():
    assert str(Level(4)) == "WARN"
    assert Level(4).meets(Level.WARN) is True


@pytest.mark.parametrize(
    "level, minimum, expected",
    [
        (Level.ERROR, Level.WARN, True),
        (Level.WARN, Level.WARN, True),
        (Level.INFO, Level.WARN, False),
        (Level.FATAL, Level.ERROR, True),
        (Level.DEBUG, Level.INFO, False),
    ],
)
def test_meets(level, minimum, expected):
    assert level.meets(minimum) is expected


@pytest.mark.parametrize(
    "level, text",
    [(Level.FATAL, "FATAL"), (Level.ERROR, "ERROR"), (Level.WARN, "WARN"), (Level.INFO, "INFO")],
)
def test_level_str(level, text):
    assert str(level) == text


def test_entry_defaults():
    entry = EnrichedEntry()
    assert entry.timestamp == ZERO_TIME
    assert entry.level is Level.UNKNOWN
    assert entry.chain_id is None
    assert entry.http_status is None
    assert entry.correlated_with == []
    assert entry.metadata == {}
    assert entry.is_deployment is False


def test_entries_do_not_share_mutable_defaults():
    first = EnrichedEntry()
    second = EnrichedEntry()
    first.correlated_with.append("db")
    first.metadata["status"] = "500"
    assert second.correlated_with == []
    assert second.metadata == {}