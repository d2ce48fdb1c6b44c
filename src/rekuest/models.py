"""Decode targets and capture holders handed to rekuest calls."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter

from .exceptions import InvalidOptionError

T = TypeVar("T")


class Ref(Generic[T]):
    """Mutable holder for a decoded value.

    ``Ref()`` keeps the plain decoded JSON, ``Ref(SomeType)`` validates it with
    pydantic first. The result is available as ``ref.value`` after the call.
    """

    def __init__(self, type_: Any = None, value: T | None = None) -> None:
        self.type = type_
        self.value = value
        self._adapter = TypeAdapter(type_) if type_ is not None else None

    def decode(self, body: bytes) -> None:
        if self._adapter is None:
            self.value = json.loads(body)
        else:
            self.value = self._adapter.validate_json(body)

    def __repr__(self) -> str:
        return f"Ref({self.type!r}, value={self.value!r})"


@dataclass
class ResponseHeaderCapture:
    """Receives a copy of the response headers after the call."""

    headers: httpx.Headers = field(default_factory=httpx.Headers)


def check_target(target: Any, what: str) -> None:
    """Reject decode targets that cannot be filled in place."""
    if isinstance(target, (Ref, dict, list)):
        return
    if isinstance(target, BaseModel):
        if type(target).model_config.get("frozen"):
            raise InvalidOptionError(f"{what} must not be a frozen model")
        return
    hint = ""
    if isinstance(target, type):
        hint = f"; pass an instance or Ref({target.__name__}) instead of the class"
    raise InvalidOptionError(
        f"{what} must be a dict, list, pydantic model instance or Ref, got {type(target).__name__}{hint}"
    )


def decode_into(target: Any, body: bytes) -> None:
    """Decode a JSON body into ``target`` in place.

    Dicts are updated, lists are refilled and models only get the fields
    present in the body assigned. A JSON null leaves dicts, lists and models
    untouched. Raises ValueError when the body does not fit the target.
    """
    if isinstance(target, Ref):
        target.decode(body)
        return
    if body.strip() == b"null":
        return
    if isinstance(target, BaseModel):
        decoded = type(target).model_validate_json(body)
        for name in decoded.model_fields_set:
            setattr(target, name, getattr(decoded, name))
        return

    data = json.loads(body)
    if isinstance(target, dict):
        if not isinstance(data, dict):
            raise ValueError(f"cannot decode JSON {type(data).__name__} into dict")
        target.update(data)
    elif isinstance(target, list):
        if not isinstance(data, list):
            raise ValueError(f"cannot decode JSON {type(data).__name__} into list")
        target[:] = data
    else:
        raise TypeError(f"unsupported decode target {type(target).__name__}")
