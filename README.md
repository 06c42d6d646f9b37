# unlog

Turn a stream of log entries into a short, prioritised incident summary that
fits an LLM context window.

The package does two jobs:

* **Enrichment**: each entry gets structured fields (HTTP status, error type,
  trace ID) and a deployment flag. Entries that are not dedup summaries also
  get an error-chain ID when they take part in one of ten built-in failure
  sequences (DB connection exhaustion, OOM cascade, deployment failure,
  circuit breaker, disk full, certificate expiry, DNS failure, rate limiting,
  queue backlog, cascade failure), and the sorted list of other sources that
  logged something within a correlation window.
* **Compaction**: entries at INFO or above are scored by severity and context,
  then written into five sections (Incident Overview, Critical Errors, Error
  Chains, Rate Anomalies, Context). Each section gets a fixed share of a token
  budget; entries that do not fit are counted in an "omitted" line.

## Installation

```
pip install .
```

The package has no runtime dependencies.

## Usage

```python
from datetime import datetime, timedelta, timezone

from unlog.entry import EnrichedEntry, Level
from unlog.enrich import Enricher, EnrichOptions
from unlog.compact import CompactOptions, compact

base = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
raw = [
    EnrichedEntry(timestamp=base, level=Level.WARN, source="db",
                  message="deadlock detected on table users", line_number=1),
    EnrichedEntry(timestamp=base + timedelta(seconds=30), level=Level.ERROR,
                  source="db", message="connection pool exhausted", line_number=2),
]

enricher = Enricher(EnrichOptions(correlation_window=timedelta(seconds=5)))
enriched = list(enricher.run(raw))

print(compact(enriched, CompactOptions(token_budget=2048)))
```

`EnrichOptions` defaults to a 5 second correlation window and
`CompactOptions` to a budget of 8192 tokens (a non-positive budget also means
the default). `Enricher.enrich(entry)` returns an enriched copy of a single
entry; `Enricher.run(entries)` yields enriched copies of a whole stream.

The building blocks can also be used on their own:

* `unlog.fields.FieldExtractor().extract(entry)` fills in `http_status`,
  `error_type` and `trace_id`, preferring metadata over the message text.
* `unlog.deploy.DeployDetector().detect(entry)` sets `is_deployment`.
* `unlog.chains.ChainMatcher().match(entry)` returns a chain ID such as
  `"db-connection-exhaustion-1"`, or `None`. A matcher can be given its own
  sequence of `ChainPattern` values made of `ChainStage` steps; by default it
  uses `BUILTIN_CHAIN_PATTERNS`.
* `unlog.correlate.Correlator(window).correlate(entry)` takes a `timedelta`
  window and sets `correlated_with`.
* `unlog.score.score(entry)` returns the priority used for ordering.
* `unlog.tokens.estimate_tokens(text)` estimates tokens as the UTF-8 length
  divided by 3.5, rounded up.

`Enricher.run` and `compact` accept an optional `cancel` argument, a
`threading.Event`; once it is set, they stop and raise
`unlog.entry.Cancelled`.

## What it does not do

The package works on `EnrichedEntry` objects that you build yourself. It does
not read or parse log files, detect log formats, filter by level or time,
remove noise or duplicates, call any LLM, or render reports, and it has no
command-line program.

## Running the tests

```
pip install ".[test]"
pytest
```