"""Rough token counting for LLM budgets."""

from __future__ import annotations


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text`` as its UTF-8 length / 3.5, rounded up."""
    size = len(text.encode("utf-8"))
    if size == 0:
        return 0
    return (size * 2 + 6) // 7