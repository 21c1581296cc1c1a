"""One-shot readiness signal shared between a log watcher and a poller."""

from __future__ import annotations

import threading
from enum import Enum


class ReadinessState(str, Enum):
    """Lifecycle of a monitored service's readiness."""

    NOT_STARTED = "NOT_STARTED"
    WAITING = "WAITING"
    READY = "READY"


class ReadinessSignal:
    """
    Monotonic readiness flag.

    Written by exactly one log watcher thread, read by any number of
    threads. READY is terminal: once set, the state never changes again.
    """

    def __init__(self, name: str = "service"):
        self.name = name
        self._state = ReadinessState.NOT_STARTED
        self._lock = threading.Lock()
        self._ready = threading.Event()

    @property
    def state(self) -> ReadinessState:
        with self._lock:
            return self._state

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def begin(self) -> None:
        """Move NOT_STARTED -> WAITING. No-op in any other state."""
        with self._lock:
            if self._state is ReadinessState.NOT_STARTED:
                self._state = ReadinessState.WAITING

    def mark_ready(self) -> bool:
        """
        Move to READY.

        Returns True only for the call that performed the transition.
        """
        with self._lock:
            if self._state is ReadinessState.READY:
                return False
            self._state = ReadinessState.READY
            self._ready.set()
            return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until READY or the timeout elapses."""
        return self._ready.wait(timeout)

    def __repr__(self) -> str:
        return f"ReadinessSignal(name={self.name!r}, state={self.state.value})"
