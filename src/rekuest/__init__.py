"""One-shot HTTP requests with composable options."""

from __future__ import annotations

import logging

from .client import DEFAULT_MAX_REDIRECTS, DEFAULT_USER_AGENT, arequest, default_async_client, default_client, request
from .context import Context
from .exceptions import (
    DecodeError,
    ErrorKind,
    InvalidOptionError,
    PayloadError,
    RekuestError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
    UseLastResponse,
)
from .models import Ref, ResponseHeaderCapture
from .request_options import (
    Option,
    RedirectInterceptor,
    RequestConfig,
    with_client,
    with_context,
    with_custom_error_response,
    with_header,
    with_json,
    with_query,
    with_redirect_interceptor,
    with_request_dump,
    with_response_dump,
    with_response_header_capture,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Context",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_USER_AGENT",
    "DecodeError",
    "ErrorKind",
    "InvalidOptionError",
    "Option",
    "PayloadError",
    "RedirectInterceptor",
    "Ref",
    "RekuestError",
    "RequestCancelledError",
    "RequestConfig",
    "RequestTimeoutError",
    "ResponseHeaderCapture",
    "TransportError",
    "UseLastResponse",
    "arequest",
    "default_async_client",
    "default_client",
    "request",
    "with_client",
    "with_context",
    "with_custom_error_response",
    "with_header",
    "with_json",
    "with_query",
    "with_redirect_interceptor",
    "with_request_dump",
    "with_response_dump",
    "with_response_header_capture",
    "__version__",
]
