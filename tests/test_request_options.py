from __future__ import annotations

import io

import httpx
import pytest
from pydantic import BaseModel, ConfigDict

from rekuest import Context, InvalidOptionError, Ref, ResponseHeaderCapture
from rekuest.request_options import (
    apply_options,
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


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)

    error: str = ""


def test_apply_options_starts_from_defaults() -> None:
    config = apply_options([])

    assert config.headers is None
    assert config.query is None
    assert config.payload is None
    assert not config.has_payload
    assert config.client is None
    assert config.context is None
    assert config.error_capture is None


def test_header_and_query_options_accumulate_in_order() -> None:
    config = apply_options(
        [
            with_header("Accept", "application/json"),
            with_query("tag", "b"),
            with_header("Accept", "text/plain"),
            with_query("tag", "a"),
        ]
    )

    assert config.headers == [("Accept", "application/json"), ("Accept", "text/plain")]
    assert config.query == [("tag", "b"), ("tag", "a")]


def test_single_value_options_last_write_wins() -> None:
    first = httpx.Client()
    second = httpx.Client()
    context = Context.background().with_cancel()
    sink = io.BytesIO()

    config = apply_options(
        [
            with_client(first),
            with_json({"a": 1}),
            with_client(second),
            with_json({"b": 2}),
            with_context(context),
            with_request_dump(sink),
            with_response_dump(sink),
        ]
    )

    assert config.client is second
    assert config.payload == {"b": 2}
    assert config.context is context
    assert config.request_dump is sink
    assert config.response_dump is sink
    first.close()
    second.close()


def test_capture_options_store_targets() -> None:
    capture = ResponseHeaderCapture()
    failure: dict[str, object] = {}

    def intercept(next_request: httpx.Request, via: list[httpx.Request]) -> None:
        return None

    config = apply_options(
        [
            with_response_header_capture(capture),
            with_custom_error_response(failure, 200),
            with_redirect_interceptor(intercept),
        ]
    )

    assert config.header_capture is capture
    assert config.error_capture is not None
    assert config.error_capture.target is failure
    assert config.error_capture.success_status == 200
    assert config.redirect_interceptor is intercept


@pytest.mark.parametrize("capture", [None, "error", 404, ("a",), Frozen, Frozen()])
def test_custom_error_response_rejects_value_targets(capture) -> None:
    with pytest.raises(InvalidOptionError):
        apply_options([with_custom_error_response(capture, 200)])


def test_custom_error_response_accepts_ref() -> None:
    config = apply_options([with_custom_error_response(Ref(Frozen), 201)])

    assert isinstance(config.error_capture.target, Ref)


def test_option_failure_stops_application() -> None:
    applied: list[str] = []

    def record(config) -> None:
        applied.append("after")

    with pytest.raises(InvalidOptionError):
        apply_options([with_custom_error_response(None, 200), record])

    assert applied == []
