"""Detection of known multi-step error chains in a stream of entries."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from unlog.entry import ZERO_TIME, EnrichedEntry, Level

# Limit on simultaneously active chains per pattern, to bound growth during spikes.
_MAX_ACTIVE_CHAINS_PER_PATTERN = 100


@dataclass(frozen=True)
class ChainStage:
    """One step of a chain: a message pattern, a minimum level and an optional source pattern."""

    message_pattern: re.Pattern[str]
    min_level: Level = Level.UNKNOWN
    source_pattern: re.Pattern[str] | None = None

    def matches(self, entry: EnrichedEntry) -> bool:
        if self.min_level is not Level.UNKNOWN and not entry.level.meets(self.min_level):
            return False
        if self.source_pattern is not None and not self.source_pattern.search(entry.source):
            return False
        return self.message_pattern.search(entry.message) is not None


@dataclass(frozen=True)
class ChainPattern:
    """A named sequence of stages that must occur within a time window."""

    name: str
    window: timedelta
    stages: tuple[ChainStage, ...]


@dataclass
class _ActiveChain:
    pattern: ChainPattern
    chain_id: str
    start_time: datetime
    next_stage: int
    line_numbers: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.next_stage >= len(self.pattern.stages)


def _stage(pattern: str, min_level: Level) -> ChainStage:
    return ChainStage(re.compile(pattern, re.IGNORECASE), min_level)


BUILTIN_CHAIN_PATTERNS: tuple[ChainPattern, ...] = (
    ChainPattern(
        "db-connection-exhaustion",
        timedelta(minutes=5),
        (
            _stage(r"(deadlock|lock\s+timeout|lock\s+wait)", Level.WARN),
            _stage(r"(connection\s+pool\s+exhausted|no\s+available\s+connections|too\s+many\s+connections)", Level.ERROR),
            _stage(r"(query\s+failed|cannot\s+execute|database\s+error|sql\s+error)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "oom-cascade",
        timedelta(minutes=3),
        (
            _stage(r"(memory\s+(warning|threshold|pressure|limit)|heap\s+(usage|size)\s*(>|exceed))", Level.WARN),
            _stage(r"(OOM\s*kill|out\s+of\s+memory|memory\s+limit\s+exceeded|killed\s+process)", Level.ERROR),
            _stage(r"(pod\s+restart|service\s+unavailable|container\s+(restart|crash)|exit\s+code\s+137)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "deployment-failure",
        timedelta(minutes=10),
        (
            _stage(r"(deploy(ing|ment)\s+start|rolling\s+update|new\s+version|pulling\s+image)", Level.INFO),
            _stage(r"(health\s*check\s+(fail|timeout|unhealthy)|readiness\s+probe\s+failed|liveness\s+probe\s+failed)", Level.WARN),
            _stage(r"(rollback|roll\s+back|reverting|deployment\s+failed|undo)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "circuit-breaker",
        timedelta(minutes=2),
        (
            _stage(r"(timeout|connection\s+refused|connect\s+failed|ECONNREFUSED)", Level.ERROR),
            _stage(r"(circuit\s+(open|breaker\s+open|breaker\s+tripped))", Level.WARN),
            _stage(r"(fallback\s+(activated|triggered|used)|degraded\s+mode)", Level.WARN),
        ),
    ),
    ChainPattern(
        "disk-full",
        timedelta(minutes=5),
        (
            _stage(r"(disk\s+space\s+(warning|low|critical)|filesystem\s+(full|usage).*\d{2,3}%)", Level.WARN),
            _stage(r"(write\s+fail|no\s+space\s+left|ENOSPC|cannot\s+write|disk\s+full)", Level.ERROR),
            _stage(r"(crash|exit|abort|fatal|service\s+(stopped|terminated))", Level.ERROR),
        ),
    ),
    ChainPattern(
        "certificate-expiry",
        timedelta(minutes=5),
        (
            _stage(r"(certificate?\s+(expir|near\s+expiry|will\s+expire)|TLS\s+warning|cert\s+renewal)", Level.WARN),
            _stage(r"(TLS\s+handshake\s+(fail|error)|SSL\s+error|certificate?\s+(invalid|expired|verify\s+fail))", Level.ERROR),
            _stage(r"(connection\s+refused|connection\s+closed|cannot\s+connect|ECONNREFUSED)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "dns-failure",
        timedelta(minutes=3),
        (
            _stage(r"(DNS\s+(timeout|resolution\s+fail|lookup\s+fail|NXDOMAIN)|name\s+resolution\s+fail)", Level.ERROR),
            _stage(r"(connection\s+failed|cannot\s+connect|dial\s+(tcp|error)|ECONNREFUSED)", Level.ERROR),
            _stage(r"(upstream\s+(unavailable|error|timeout)|service\s+unavailable|bad\s+gateway|502|503)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "rate-limiting",
        timedelta(minutes=5),
        (
            _stage(r"(rate\s+limit\s+(warning|approaching|threshold)|throttl(e|ing))", Level.WARN),
            _stage(r"(429|too\s+many\s+requests|rate\s+limit\s+(exceeded|hit))", Level.ERROR),
            _stage(r"(client\s+error|request\s+failed|service\s+degraded|dropped\s+request)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "queue-backlog",
        timedelta(minutes=10),
        (
            _stage(r"(consumer\s+lag|processing\s+behind|queue\s+(depth|size)\s*(>|exceed|growing))", Level.WARN),
            _stage(r"(queue\s+full|buffer\s+(full|overflow)|message\s+(dropped|rejected))", Level.ERROR),
            _stage(r"(producer\s+blocked|publish\s+failed|backpressure|send\s+timeout)", Level.ERROR),
        ),
    ),
    ChainPattern(
        "cascade-failure",
        timedelta(minutes=5),
        (
            _stage(r"(failed|error|exception).*service", Level.ERROR),
            _stage(r"(timeout|timed?\s+out).*upstream", Level.ERROR),
            _stage(r"(HTTP\s+5\d{2}|status[=: ]+5\d{2}|5\d{2}\s+(error|response))", Level.ERROR),
        ),
    ),
)


class ChainMatcher:
    """Tracks partially matched chain patterns across a stream of entries."""

    def __init__(self, patterns: Iterable[ChainPattern] | None = None) -> None:
        self._patterns = tuple(BUILTIN_CHAIN_PATTERNS if patterns is None else patterns)
        self._active: list[_ActiveChain] = []
        self._max_time = ZERO_TIME
        self._counter = 0

    def match(self, entry: EnrichedEntry) -> str | None:
        """Advance or start chains with ``entry``; return the chain ID it belongs to, if any."""
        if entry.timestamp > self._max_time:
            self._max_time = entry.timestamp
        self._expire()

        matched: str | None = None

        for chain in self._active:
            if chain.complete:
                continue
            if chain.pattern.stages[chain.next_stage].matches(entry):
                chain.next_stage += 1
                chain.line_numbers.append(entry.line_number)
                if chain.complete or matched is None:
                    matched = chain.chain_id

        for pattern in self._patterns:
            if not pattern.stages[0].matches(entry):
                continue
            if self._count_active(pattern.name) >= _MAX_ACTIVE_CHAINS_PER_PATTERN:
                continue
            self._counter += 1
            chain_id = f"{pattern.name}-{self._counter}"
            self._active.append(
                _ActiveChain(
                    pattern=pattern,
                    chain_id=chain_id,
                    start_time=entry.timestamp,
                    next_stage=1,
                    line_numbers=[entry.line_number],
                )
            )
            if matched is None:
                matched = chain_id

        return matched

    def _count_active(self, name: str) -> int:
        return sum(1 for chain in self._active if chain.pattern.name == name)

    def _expire(self) -> None:
        self._active = [
            chain
            for chain in self._active
            if self._max_time - chain.start_time <= chain.pattern.window
        ]