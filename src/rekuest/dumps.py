"""HTTP/1.1 wire-format dumps of requests and responses."""

from __future__ import annotations

import io
import logging
from typing import Iterable

import httpx

logger = logging.getLogger(__name__)


def _header_lines(raw_headers: Iterable[tuple[bytes, bytes]]) -> bytes:
    return b"".join(name + b": " + value + b"\r\n" for name, value in raw_headers)


def dump_request(request: httpx.Request) -> bytes:
    """Render ``request`` the way it goes out on the wire, body included."""
    target = request.url.raw_path or b"/"
    start = request.method.encode("ascii") + b" " + target + b" HTTP/1.1\r\n"
    return start + _header_lines(request.headers.raw) + b"\r\n" + request.content


def dump_response(response: httpx.Response, body: bytes) -> bytes:
    """Render ``response`` with an already read ``body``."""
    version = (response.http_version or "HTTP/1.1").encode("ascii")
    reason = (response.reason_phrase or "").encode("ascii", errors="replace")
    start = version + b" " + str(response.status_code).encode("ascii") + b" " + reason + b"\r\n"
    return start + _header_lines(response.headers.raw) + b"\r\n" + body


def write_dump(sink, title: str, dump: bytes) -> None:
    """Write a titled dump to a text or binary sink. Failures are only logged."""
    framed = f"{title} ======\n".encode() + dump + b"\n\n"
    try:
        if isinstance(sink, io.TextIOBase):
            sink.write(framed.decode("utf-8", errors="replace"))
        else:
            sink.write(framed)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Cannot dump %s: %s", title.lower(), exc)
