"""Per-call options for rekuest requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any, Callable, Union

import httpx

from .context import Context
from .exceptions import InvalidOptionError
from .models import ResponseHeaderCapture, check_target

DumpSink = Union[IO[bytes], IO[str]]

# Called with the request about to be sent and the requests already made,
# oldest first. Raise UseLastResponse to stop following redirects.
RedirectInterceptor = Callable[[httpx.Request, list], None]


@dataclass(frozen=True)
class ErrorCapture:
    target: Any
    success_status: int


@dataclass
class RequestConfig:
    headers: list[tuple[str, str]] | None = None
    query: list[tuple[str, str]] | None = None
    payload: Any = None
    request_dump: DumpSink | None = None
    response_dump: DumpSink | None = None
    redirect_interceptor: RedirectInterceptor | None = None
    header_capture: ResponseHeaderCapture | None = None
    error_capture: ErrorCapture | None = None
    client: httpx.Client | httpx.AsyncClient | None = None
    context: Context | None = None

    @property
    def has_payload(self) -> bool:
        return self.payload is not None


Option = Callable[[RequestConfig], None]


def apply_options(options: tuple[Option, ...] | list[Option]) -> RequestConfig:
    """Build a fresh config, applying options in order."""
    config = RequestConfig()
    for apply in options:
        apply(config)
    return config


def with_header(key: str, value: str) -> Option:
    """Add a header value. Configured headers replace the client defaults."""

    def apply(config: RequestConfig) -> None:
        if config.headers is None:
            config.headers = []
        config.headers.append((str(key), str(value)))

    return apply


def with_query(key: str, value: str) -> Option:
    """Add a query value. Configured query values replace the URL's own query string."""

    def apply(config: RequestConfig) -> None:
        if config.query is None:
            config.query = []
        config.query.append((str(key), str(value)))

    return apply


def with_request_dump(sink: DumpSink) -> Option:
    def apply(config: RequestConfig) -> None:
        config.request_dump = sink

    return apply


def with_response_dump(sink: DumpSink) -> Option:
    def apply(config: RequestConfig) -> None:
        config.response_dump = sink

    return apply


def with_json(payload: Any) -> Option:
    """Send ``payload`` serialized as JSON in the request body. None sends no body."""

    def apply(config: RequestConfig) -> None:
        config.payload = payload

    return apply


def with_redirect_interceptor(interceptor: RedirectInterceptor) -> Option:
    """Consult ``interceptor`` before following each redirect.

    Raising ``UseLastResponse`` stops redirecting and returns the redirect
    response itself; any other exception aborts the call.
    """

    def apply(config: RequestConfig) -> None:
        config.redirect_interceptor = interceptor

    return apply


def with_response_header_capture(capture: ResponseHeaderCapture) -> Option:
    def apply(config: RequestConfig) -> None:
        config.header_capture = capture

    return apply


def with_custom_error_response(capture: Any, success_status: int) -> Option:
    """Decode non-success bodies into ``capture``.

    When an API answers ``success_status`` with one shape and failures with
    another, pass a target for the failure shape here. Whenever the received
    status differs from ``success_status`` the body is decoded into
    ``capture`` instead of the call destination, and the call returns the
    status without raising. Check the status (or ``capture``) to detect the
    failure.
    """

    def apply(config: RequestConfig) -> None:
        if capture is None:
            raise InvalidOptionError("custom error response capture must not be None")
        check_target(capture, "custom error response capture")
        config.error_capture = ErrorCapture(target=capture, success_status=int(success_status))

    return apply


def with_client(client: httpx.Client | httpx.AsyncClient) -> Option:
    """Send the request with ``client`` instead of a fresh default client."""

    def apply(config: RequestConfig) -> None:
        config.client = client

    return apply


def with_context(context: Context) -> Option:
    def apply(config: RequestConfig) -> None:
        config.context = context

    return apply
