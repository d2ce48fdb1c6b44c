"""Redaction of credential headers in debug logs."""

from __future__ import annotations

import httpx

REDACTED = "[REDACTED]"

# Request headers that carry credentials.
SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "x-api-key"})


def sanitize_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Return the header pairs of an outgoing request with credentials masked.

    Repeated headers stay separate pairs, in request order.
    """
    return [
        (name, REDACTED if name.lower() in SENSITIVE_HEADERS else value)
        for name, value in headers.multi_items()
    ]
