"""Log entry enrichment and token-budgeted incident summaries."""

__version__ = "0.1.0"