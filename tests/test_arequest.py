from __future__ import annotations

import asyncio
import io
import logging
import threading
import time

import httpx
import pytest

from rekuest import (
    Context,
    DecodeError,
    InvalidOptionError,
    RequestCancelledError,
    ResponseHeaderCapture,
    TransportError,
    UseLastResponse,
    arequest,
    with_client,
    with_context,
    with_custom_error_response,
    with_query,
    with_redirect_interceptor,
    with_response_dump,
    with_response_header_capture,
)


def run_with_client(handler, *args, **kwargs) -> int:
    async def call() -> int:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs) as client:
            return await arequest(*args[:3], with_client(client), *args[3:])

    return asyncio.run(call())


def test_arequest_decodes_and_captures_headers() -> None:
    captured: dict[str, httpx.URL] = {}

    def send_request(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        return httpx.Response(200, json={"id": 1}, headers={"X-Request-Id": "req-9"})

    destination: dict[str, object] = {}
    capture = ResponseHeaderCapture()
    status = run_with_client(
        send_request,
        "GET",
        "https://api.example.com/items?page=3",
        destination,
        with_query("page", "1"),
        with_response_header_capture(capture),
    )

    assert status == 200
    assert destination == {"id": 1}
    assert captured["url"].query == b"page=1"
    assert capture.headers["x-request-id"] == "req-9"


def test_arequest_custom_error_response() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"error": "invalid"})

    destination: dict[str, object] = {}
    failure: dict[str, object] = {}
    status = run_with_client(
        send_request,
        "POST",
        "https://api.example.com/items",
        destination,
        with_custom_error_response(failure, 201),
    )

    assert status == 422
    assert failure == {"error": "invalid"}
    assert destination == {}


def test_arequest_decode_failure_keeps_status() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, content=b"maintenance")

    with pytest.raises(DecodeError) as exc_info:
        run_with_client(send_request, "GET", "https://api.example.com", [])

    assert exc_info.value.status_code == 503
    assert exc_info.value.body == "maintenance"


def test_arequest_redirect_interceptor_stops() -> None:
    calls: list[str] = []

    def send_request(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "/new"})
        return httpx.Response(200)

    def intercept(next_request: httpx.Request, via: list[httpx.Request]) -> None:
        raise UseLastResponse()

    status = run_with_client(
        send_request,
        "GET",
        "https://api.example.com/old",
        None,
        with_redirect_interceptor(intercept),
    )

    assert status == 301
    assert calls == ["/old"]


def test_arequest_cancelled_context() -> None:
    context = Context.background().with_cancel()
    context.cancel()

    with pytest.raises(RequestCancelledError) as exc_info:
        run_with_client(lambda request: httpx.Response(200), "GET", "https://api.example.com", None, with_context(context))

    assert exc_info.value.status_code == 0


def test_arequest_transport_failure() -> None:
    def send_request(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed")

    with pytest.raises(TransportError) as exc_info:
        run_with_client(send_request, "GET", "https://unknown.invalid", {})

    assert exc_info.value.status_code == 0


def test_sync_client_is_rejected_by_arequest() -> None:
    with httpx.Client() as client:
        with pytest.raises(InvalidOptionError):
            asyncio.run(arequest("GET", "https://api.example.com", None, with_client(client)))


def test_arequest_aborts_when_context_is_cancelled_in_flight() -> None:
    context = Context.background().with_cancel()

    async def send_request(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200)

    timer = threading.Timer(0.1, context.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(RequestCancelledError) as exc_info:
            run_with_client(send_request, "GET", "https://api.example.com/slow", None, with_context(context))
    finally:
        timer.cancel()

    assert exc_info.value.status_code == 0
    assert time.monotonic() - started < 0.9


def test_arequest_response_dump_read_failure_is_logged(caplog) -> None:
    class ResetStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            raise httpx.ReadError("connection reset")
            yield b""

    def send_request(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, stream=ResetStream())

    with caplog.at_level(logging.WARNING, logger="rekuest"):
        status = run_with_client(send_request, "GET", "https://api.example.com", None, with_response_dump(io.BytesIO()))

    assert status == 204
    assert "Cannot dump response" in caplog.text
