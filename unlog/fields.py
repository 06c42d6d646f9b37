"""Extraction of HTTP status, error type and trace ID from log entries."""

from __future__ import annotations

import re
from collections.abc import Iterable

from unlog.entry import EnrichedEntry

_HTTP_STATUS_RE = re.compile(r"(?:HTTP[/ ][\d.]+\s+|status[= :]?\s*)(\d{3})\b", re.ASCII)
_ERROR_TYPE_RE = re.compile(r"(?:(?:Caused by|Exception|Error|Panic|FATAL):\s*)([\w.]+)", re.ASCII)
_TRACE_ID_RE = re.compile(
    r"(?:trace[_-]?id|request[_-]?id|correlation[_-]?id)[=: ]+[\"']?([a-zA-Z0-9\-]{8,})",
    re.IGNORECASE | re.ASCII,
)
_INTEGER_RE = re.compile(r"[+-]?\d+", re.ASCII)

_HTTP_STATUS_KEYS = ("status", "status_code", "http_status", "statusCode", "response_code")
_ERROR_TYPE_KEYS = ("error", "error.type", "exception", "exception.type", "err")
_TRACE_ID_KEYS = (
    "trace_id",
    "traceId",
    "trace",
    "request_id",
    "requestId",
    "x-request-id",
    "correlation_id",
)


def _parse_status(text: str) -> int | None:
    text = text.strip()
    if not _INTEGER_RE.fullmatch(text):
        return None
    code = int(text)
    return code if 100 <= code <= 599 else None


def _first_metadata_value(entry: EnrichedEntry, keys: Iterable[str]) -> str | None:
    for key in keys:
        value = entry.metadata.get(key)
        if value:
            return value
    return None


class FieldExtractor:
    """Fills in structured fields, preferring metadata over message text."""

    def extract(self, entry: EnrichedEntry) -> None:
        """Populate ``http_status``, ``error_type`` and ``trace_id`` on ``entry``."""
        self._extract_http_status(entry)
        self._extract_error_type(entry)
        self._extract_trace_id(entry)

    @staticmethod
    def _extract_http_status(entry: EnrichedEntry) -> None:
        for key in _HTTP_STATUS_KEYS:
            if key in entry.metadata:
                code = _parse_status(entry.metadata[key])
                if code is not None:
                    entry.http_status = code
                    return
        match = _HTTP_STATUS_RE.search(entry.message)
        if match:
            code = _parse_status(match.group(1))
            if code is not None:
                entry.http_status = code

    @staticmethod
    def _extract_error_type(entry: EnrichedEntry) -> None:
        value = _first_metadata_value(entry, _ERROR_TYPE_KEYS)
        if value is not None:
            entry.error_type = value
            return
        match = _ERROR_TYPE_RE.search(entry.message)
        if match:
            entry.error_type = match.group(1)

    @staticmethod
    def _extract_trace_id(entry: EnrichedEntry) -> None:
        value = _first_metadata_value(entry, _TRACE_ID_KEYS)
        if value is not None:
            entry.trace_id = value
            return
        match = _TRACE_ID_RE.search(entry.message)
        if match:
            entry.trace_id = match.group(1)