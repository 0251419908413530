"""One-shot readiness handle for the connector's store connection."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from types import TracebackType

ReadyListener = Callable[[], object]
ErrorListener = Callable[[BaseException], object]


class ConnectionState(str, Enum):
    CREATED = "created"
    OPENING = "opening"
    READY = "ready"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ConnectionState.READY, ConnectionState.FAILED})


class Readiness:
    """Tracks ``created -> opening -> ready | failed``.

    ``ready`` and ``failed`` are terminal and reached at most once. Listeners run
    on the event loop via ``call_soon``, each at most once; a listener attached
    after the outcome is known still receives it.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._state = ConnectionState.CREATED
        self._cause: BaseException | None = None
        self._cause_traceback: TracebackType | None = None
        self._settled = asyncio.Event()
        self._ready_listeners: list[ReadyListener] = []
        self._error_listeners: list[ErrorListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def cause(self) -> BaseException | None:
        """Failure cause once ``failed``, otherwise ``None``."""
        return self._cause

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def is_settled(self) -> bool:
        return self._state in TERMINAL_STATES

    def mark_opening(self) -> None:
        if self._state is not ConnectionState.CREATED:
            raise RuntimeError(f"cannot start opening from state '{self._state.value}'")
        self._state = ConnectionState.OPENING

    def resolve(self) -> None:
        """Enter ``ready`` and notify ready listeners."""
        self._settle(ConnectionState.READY)
        for listener in self._ready_listeners:
            self._loop.call_soon(listener)
        self._clear_listeners()

    def fail(self, cause: BaseException) -> None:
        """Enter ``failed`` and notify error listeners with ``cause``."""
        self._settle(ConnectionState.FAILED)
        self._cause = cause
        self._cause_traceback = cause.__traceback__
        for listener in self._error_listeners:
            self._loop.call_soon(listener, cause)
        self._clear_listeners()

    def on_ready(self, listener: ReadyListener) -> None:
        if self._state is ConnectionState.READY:
            self._loop.call_soon(listener)
        elif not self.is_settled:
            self._ready_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        if self._state is ConnectionState.FAILED:
            self._loop.call_soon(listener, self._cause)
        elif not self.is_settled:
            self._error_listeners.append(listener)

    async def wait(self) -> None:
        """Return once ready; raise the failure cause once failed."""
        await self._settled.wait()
        if self._cause is not None:
            # Re-raising extends __traceback__; restart from where the failure happened.
            raise self._cause.with_traceback(self._cause_traceback)

    def _settle(self, state: ConnectionState) -> None:
        if self.is_settled:
            raise RuntimeError(f"connection already settled as '{self._state.value}'")
        self._state = state
        self._settled.set()

    def _clear_listeners(self) -> None:
        self._ready_listeners.clear()
        self._error_listeners.clear()
