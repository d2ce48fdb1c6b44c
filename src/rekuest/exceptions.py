"""Exceptions raised by rekuest calls."""

from __future__ import annotations

from enum import Enum
from typing import Mapping


class ErrorKind(str, Enum):
    INVALID_OPTION = "INVALID_OPTION"
    PAYLOAD = "PAYLOAD"
    TRANSPORT = "TRANSPORT"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    DECODE = "DECODE"


class RekuestError(Exception):
    """Base exception for all rekuest failures.

    ``status_code`` is 0 whenever no HTTP response was obtained.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 0,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers) if headers is not None else {}
        self.cause = cause

    def __str__(self) -> str:
        message = str(self.args[0])
        if self.cause is not None:
            message = f"{message}: {self.cause}"
        if self.status_code:
            message = f"{self.status_code}: {message}"
        if self.body is not None:
            message = f"{message}\nresponse: {self.body}"
        return message


class InvalidOptionError(RekuestError):
    """Raised for caller misuse, before any network I/O."""

    kind = ErrorKind.INVALID_OPTION


class PayloadError(RekuestError):
    """Raised when the JSON payload cannot be serialized."""

    kind = ErrorKind.PAYLOAD


class TransportError(RekuestError):
    """Raised for transport-level failures like URL, DNS, TCP and TLS errors."""

    kind = ErrorKind.TRANSPORT


class RequestTimeoutError(TransportError):
    """Raised when the request exceeds its timeout or context deadline."""

    kind = ErrorKind.TIMEOUT


class RequestCancelledError(TransportError):
    """Raised when the request context was cancelled."""

    kind = ErrorKind.CANCELLED


class DecodeError(RekuestError):
    """Raised when the response body does not decode into the target.

    The HTTP exchange itself succeeded, so ``status_code`` holds the received
    status and ``body`` the raw response text.
    """

    kind = ErrorKind.DECODE


class UseLastResponse(Exception):
    """Raise from a redirect interceptor to stop following redirects.

    The response that carried the redirect is returned to the caller as is.
    """
