"""Synchronous and asynchronous single-call request executors."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx
import pydantic_core

from .context import Context
from .dumps import dump_request, dump_response, write_dump
from .exceptions import (
    DecodeError,
    InvalidOptionError,
    PayloadError,
    RekuestError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
    UseLastResponse,
)
from .models import check_target, decode_into
from .request_options import Option, RequestConfig, apply_options
from .security import sanitize_headers

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 10
DEFAULT_USER_AGENT = "rekuest/0.1.0"

_FRAMING_HEADERS = ("Host", "Content-Length", "Transfer-Encoding")

_client_kwargs = {
    "follow_redirects": True,
    "max_redirects": DEFAULT_MAX_REDIRECTS,
    "timeout": None,
    "trust_env": False,
    "headers": {"User-Agent": DEFAULT_USER_AGENT},
}


def default_client() -> httpx.Client:
    """Bare client used when no client option is given: no timeout, no retries."""
    return httpx.Client(**_client_kwargs)


def default_async_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(**_client_kwargs)


def _encode_query(pairs: Sequence[tuple[str, str]]) -> httpx.QueryParams:
    # Keys sorted, values kept in insertion order per key.
    return httpx.QueryParams(sorted(pairs, key=lambda pair: pair[0]))


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


def _bounded(value: float | None, limit: float) -> float:
    return limit if value is None else min(value, limit)


class _BaseExchange:
    """State and steps shared by the sync and async executors.

    One exchange covers exactly one call: options are applied once on
    construction and the resulting config is only read afterwards.
    """

    def __init__(self, method: str, url: str, destination: Any, options: Sequence[Option]) -> None:
        if destination is not None:
            check_target(destination, "destination")
        self.destination = destination
        self.config: RequestConfig = apply_options(options)
        self.method = method.upper()
        self.context = self.config.context or Context.background()
        self.url = self._build_url(url)
        self.content = self._encode_payload()
        self._read_error: TransportError | None = None

    def _build_url(self, raw: str) -> httpx.URL:
        try:
            url = httpx.URL(raw)
        except (httpx.InvalidURL, TypeError) as exc:
            raise TransportError(f"invalid URL {raw!r}", cause=exc) from exc
        if self.config.query is not None:
            url = url.copy_with(params=_encode_query(self.config.query))
        return url

    def _encode_payload(self) -> bytes | None:
        if not self.config.has_payload:
            return None
        try:
            return pydantic_core.to_json(self.config.payload) + b"\n"
        except pydantic_core.PydanticSerializationError as exc:
            raise PayloadError("cannot encode JSON payload", cause=exc) from exc

    def _timeout(self, client: httpx.Client | httpx.AsyncClient) -> httpx.Timeout:
        remaining = self.context.remaining()
        if remaining is None:
            return client.timeout
        base = client.timeout
        return httpx.Timeout(
            connect=_bounded(base.connect, remaining),
            read=_bounded(base.read, remaining),
            write=_bounded(base.write, remaining),
            pool=_bounded(base.pool, remaining),
        )

    def _build_request(self, client: httpx.Client | httpx.AsyncClient) -> httpx.Request:
        headers = None
        if self.config.headers is None and self.content is not None:
            headers = {"Content-Type": "application/json"}
        request = client.build_request(
            self.method,
            self.url,
            content=self.content,
            headers=headers,
            timeout=self._timeout(client),
        )
        if self.config.headers is not None:
            replaced = httpx.Headers(self.config.headers)
            for name in _FRAMING_HEADERS:
                if name in request.headers and name not in replaced:
                    replaced[name] = request.headers[name]
            request.headers = replaced
        return request

    def _dump_request(self, request: httpx.Request) -> None:
        if self.config.request_dump is None:
            return
        try:
            dump = dump_request(request)
        except httpx.RequestNotRead as exc:
            logger.warning("Cannot dump request: %s", exc)
            return
        write_dump(self.config.request_dump, "REQUEST", dump)

    def _dump_response(self, response: httpx.Response, body: bytes) -> None:
        write_dump(self.config.response_dump, "RESPONSE", dump_response(response, body))

    def _follow_redirect(self, response: httpx.Response, via: list[httpx.Request]) -> bool:
        """Ask the interceptor whether to follow ``response.next_request``."""
        next_request = response.next_request
        try:
            self.config.redirect_interceptor(next_request, list(via))
        except UseLastResponse:
            logger.debug("Redirect to %s stopped by interceptor", next_request.url)
            return False
        except Exception as exc:
            raise TransportError(f"redirect to {next_request.url} aborted", cause=exc) from exc
        return True

    @staticmethod
    def _check_redirect_count(client: httpx.Client | httpx.AsyncClient, via: list[httpx.Request]) -> None:
        if len(via) > client.max_redirects:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=via[-1])

    def _received(self, response: httpx.Response) -> None:
        logger.debug("Received %s for %s %s", response.status_code, self.method, response.url)
        if self.config.header_capture is not None:
            self.config.header_capture.headers = httpx.Headers(response.headers)

    def _check_before_read(self) -> None:
        self.context.raise_if_done()
        if self._read_error is not None:
            raise self._read_error

    def _read_failed(self, exc: httpx.HTTPError, response: httpx.Response) -> TransportError:
        self._read_error = self._transport_error(exc, response.status_code)
        return self._read_error

    def _decode(self, response: httpx.Response, body: bytes) -> int:
        status = response.status_code
        capture = self.config.error_capture
        if capture is not None and status != capture.success_status:
            self._decode_into(capture.target, response, body)
            return status
        self._decode_into(self.destination, response, body)
        return status

    @staticmethod
    def _decode_into(target: Any, response: httpx.Response, body: bytes) -> None:
        try:
            decode_into(target, body)
        except (ValueError, TypeError) as exc:
            raise DecodeError(
                "cannot decode response body",
                status_code=response.status_code,
                body=body.decode("utf-8", errors="replace"),
                headers=response.headers,
                cause=exc,
            ) from exc

    @staticmethod
    def _transport_error(exc: httpx.HTTPError, status_code: int = 0) -> TransportError:
        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError("request timed out", status_code=status_code, cause=exc)
        return TransportError("request failed", status_code=status_code, cause=exc)


class _SyncExchange(_BaseExchange):
    def run(self, client: httpx.Client) -> int:
        self.context.raise_if_done()
        request = self._build_request(client)
        self._dump_request(request)
        logger.debug("Sending %s %s headers=%s", request.method, request.url, sanitize_headers(request.headers))
        try:
            response = self._send(client, request)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc) from exc
        try:
            self.context.raise_if_done()
            return self._handle(response)
        finally:
            response.close()

    def _send(self, client: httpx.Client, request: httpx.Request) -> httpx.Response:
        if self.config.redirect_interceptor is None:
            return client.send(request, stream=True)

        via: list[httpx.Request] = []
        response = client.send(request, stream=True, follow_redirects=False)
        while response.next_request is not None:
            via.append(response.request)
            try:
                self._check_redirect_count(client, via)
                if not self._follow_redirect(response, via):
                    return response
                self.context.raise_if_done()
            except BaseException:
                response.close()
                raise
            next_request = response.next_request
            response.close()
            response = client.send(next_request, stream=True, follow_redirects=False)
        return response

    def _read(self, response: httpx.Response) -> bytes:
        self._check_before_read()
        try:
            return response.read()
        except httpx.HTTPError as exc:
            raise self._read_failed(exc, response) from exc

    def _handle(self, response: httpx.Response) -> int:
        if self.config.response_dump is not None:
            try:
                body = self._read(response)
            except RekuestError as exc:
                logger.warning("Cannot dump response: %s", exc)
            else:
                self._dump_response(response, body)
        self._received(response)
        if self.destination is None:
            return response.status_code
        return self._decode(response, self._read(response))


class _AsyncExchange(_BaseExchange):
    async def run(self, client: httpx.AsyncClient) -> int:
        self.context.raise_if_done()
        request = self._build_request(client)
        self._dump_request(request)
        logger.debug("Sending %s %s headers=%s", request.method, request.url, sanitize_headers(request.headers))
        try:
            response = await self._send_cancellable(client, request)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc) from exc
        try:
            self.context.raise_if_done()
            return await self._handle(response)
        finally:
            await response.aclose()

    async def _send_cancellable(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        """Send, aborting the in-flight request once the context is cancelled."""
        loop = asyncio.get_running_loop()
        cancelled = loop.create_future()

        def wake() -> None:
            loop.call_soon_threadsafe(_resolve, cancelled)

        unregister = self.context.on_cancel(wake)
        sending = asyncio.ensure_future(self._send(client, request))
        try:
            await asyncio.wait({sending, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            sending.cancel()
            raise
        finally:
            unregister()
        if sending.done():
            cancelled.cancel()
            return sending.result()

        sending.cancel()
        try:
            response = await sending
        except (asyncio.CancelledError, httpx.HTTPError):
            pass
        else:
            await response.aclose()
        raise RequestCancelledError("context canceled")

    async def _send(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        if self.config.redirect_interceptor is None:
            return await client.send(request, stream=True)

        via: list[httpx.Request] = []
        response = await client.send(request, stream=True, follow_redirects=False)
        while response.next_request is not None:
            via.append(response.request)
            try:
                self._check_redirect_count(client, via)
                if not self._follow_redirect(response, via):
                    return response
                self.context.raise_if_done()
            except BaseException:
                await response.aclose()
                raise
            next_request = response.next_request
            await response.aclose()
            response = await client.send(next_request, stream=True, follow_redirects=False)
        return response

    async def _read(self, response: httpx.Response) -> bytes:
        self._check_before_read()
        try:
            return await response.aread()
        except httpx.HTTPError as exc:
            raise self._read_failed(exc, response) from exc

    async def _handle(self, response: httpx.Response) -> int:
        if self.config.response_dump is not None:
            try:
                body = await self._read(response)
            except RekuestError as exc:
                logger.warning("Cannot dump response: %s", exc)
            else:
                self._dump_response(response, body)
        self._received(response)
        if self.destination is None:
            return response.status_code
        return self._decode(response, await self._read(response))


def request(method: str, url: str, destination: Any = None, *options: Option) -> int:
    """Perform one HTTP request and return its status code.

    ``destination`` receives the JSON-decoded response body; pass None to
    only get the status code, in which case the body is never read. Behaviour
    is customised with the ``with_*`` options, applied in order.

    Raises ``InvalidOptionError`` before any I/O on misuse, ``TransportError``
    (status_code 0) when no response was obtained and ``DecodeError`` when the
    body does not fit its target.
    """
    exchange = _SyncExchange(method, url, destination, options)
    client = exchange.config.client
    if client is None:
        with default_client() as owned:
            return exchange.run(owned)
    if not isinstance(client, httpx.Client):
        raise InvalidOptionError("request() needs an httpx.Client, use arequest() for httpx.AsyncClient")
    return exchange.run(client)


async def arequest(method: str, url: str, destination: Any = None, *options: Option) -> int:
    """Async counterpart of ``request`` driven by an ``httpx.AsyncClient``."""
    exchange = _AsyncExchange(method, url, destination, options)
    client = exchange.config.client
    if client is None:
        async with default_async_client() as owned:
            return await exchange.run(owned)
    if not isinstance(client, httpx.AsyncClient):
        raise InvalidOptionError("arequest() needs an httpx.AsyncClient, use request() for httpx.Client")
    return await exchange.run(client)
