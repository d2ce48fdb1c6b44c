"""Cancellation and deadline handles for rekuest calls."""

from __future__ import annotations

import threading
import time
from typing import Callable

from .exceptions import RequestCancelledError, RequestTimeoutError, TransportError


class Context:
    """Cancellation handle passed to a call through ``with_context``.

    A context is done once it, or any of its parents, is cancelled or its
    deadline (a ``time.monotonic()`` timestamp) has passed.
    """

    def __init__(self, *, parent: Context | None = None, deadline: float | None = None) -> None:
        self._parent = parent
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def background(cls) -> Context:
        """Return a context that is never cancelled and has no deadline."""
        return cls()

    def with_cancel(self) -> Context:
        return Context(parent=self)

    def with_deadline(self, deadline: float) -> Context:
        return Context(parent=self, deadline=deadline)

    def with_timeout(self, seconds: float) -> Context:
        return self.with_deadline(time.monotonic() + seconds)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` when this context or a parent is cancelled.

        Runs immediately if already cancelled. Returns a function that
        unregisters the callback. Callbacks may run on the cancelling thread.
        """
        registered: list[Context] = []
        for ctx in self._chain():
            with ctx._lock:
                if ctx._cancelled.is_set():
                    fired = True
                else:
                    fired = False
                    ctx._callbacks.append(callback)
                    registered.append(ctx)
            if fired:
                _remove(registered, callback)
                callback()
                return lambda: None
        return lambda: _remove(registered, callback)

    @property
    def deadline(self) -> float | None:
        deadlines = [ctx._deadline for ctx in self._chain() if ctx._deadline is not None]
        return min(deadlines) if deadlines else None

    @property
    def cancelled(self) -> bool:
        return any(ctx._cancelled.is_set() for ctx in self._chain())

    @property
    def expired(self) -> bool:
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def err(self) -> TransportError | None:
        """Return the error describing why the context is done, if it is."""
        if self.cancelled:
            return RequestCancelledError("context canceled")
        if self.expired:
            return RequestTimeoutError("context deadline exceeded")
        return None

    def raise_if_done(self) -> None:
        error = self.err()
        if error is not None:
            raise error

    def _chain(self) -> list[Context]:
        chain: list[Context] = []
        ctx: Context | None = self
        while ctx is not None:
            chain.append(ctx)
            ctx = ctx._parent
        return chain


def _remove(contexts: list[Context], callback: Callable[[], None]) -> None:
    for ctx in contexts:
        with ctx._lock:
            if callback in ctx._callbacks:
                ctx._callbacks.remove(callback)
