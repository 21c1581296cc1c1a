"""
Log Watcher - Tails a live output stream until a readiness marker shows up.

Architecture:
1. start() - spawns a daemon thread that iterates the stream
2. Every chunk is echoed to the container logger and searched for the marker
3. First match flips the ReadinessSignal to READY and fires on_ready
4. Stream end terminates the thread; stop() closes the stream and joins

Chunk boundaries: by default every chunk is searched on its own, so a marker
split across two chunks is missed. Pass span_chunks=True to carry the tail of
the previous chunk over and catch split markers as well.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable, Optional, Union

from stargate_smoke.core.logging import get_container_logger, get_logger
from stargate_smoke.readiness.signal import ReadinessSignal


logger = get_logger("readiness.watcher")

Chunk = Union[bytes, str]


class LogWatcher:
    """
    Watches one process output stream for a readiness marker.

    Usage:
        signal = ReadinessSignal("cassandra")
        watcher = LogWatcher(container.logs(stream=True, follow=True),
                             "Created default superuser role", signal)
        watcher.start()
        # ... poll signal.is_ready ...
        watcher.stop()
    """

    def __init__(
        self,
        stream: Iterable[Chunk],
        marker: str,
        signal: ReadinessSignal,
        on_ready: Optional[Callable[[], Any]] = None,
        echo: Optional[Callable[[str], Any]] = None,
        span_chunks: bool = False,
        name: Optional[str] = None,
    ):
        if not marker:
            raise ValueError("marker must be a non-empty string")

        self.stream = stream
        self.marker = marker
        self.signal = signal
        self.on_ready = on_ready
        self.span_chunks = span_chunks
        self.name = name or signal.name
        self._echo = echo or self._log_chunk
        self._output_logger = get_container_logger(self.name)
        self._carry = ""
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._finished = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def finished(self) -> bool:
        """True once the stream has been exhausted or broken."""
        return self._finished.is_set()

    def start(self) -> "LogWatcher":
        """Start tailing in a background thread."""
        if self._thread is not None:
            raise RuntimeError(f"Log watcher for {self.name} already started")

        self.signal.begin()
        self._thread = threading.Thread(
            target=self._run,
            name=f"log-watcher-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Watching {self.name} logs for {self.marker!r}")
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the stream to be exhausted. Returns finished."""
        return self._finished.wait(timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """Close the stream and wait for the thread to exit."""
        self._stopping.set()

        close = getattr(self.stream, "close", None)
        if callable(close):
            try:
                close()
            except Exception as e:
                logger.debug(f"Closing {self.name} log stream failed: {e}")

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"Log watcher for {self.name} did not exit within {timeout}s")

    def feed(self, chunk: Chunk) -> bool:
        """
        Process one chunk of output.

        Returns True when this chunk made the signal READY.
        """
        text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, bytes) else chunk
        self._echo(text)

        if self.span_chunks:
            window = self._carry + text
            keep = len(self.marker) - 1
            self._carry = window[-keep:] if keep else ""
        else:
            window = text

        if self.marker not in window:
            return False

        if not self.signal.mark_ready():
            return False

        logger.info(f"{self.name} ready!")
        if self.on_ready is not None:
            try:
                self.on_ready()
            except Exception:
                logger.exception(f"on_ready callback for {self.name} failed")
        return True

    def _run(self) -> None:
        try:
            for chunk in self.stream:
                if self._stopping.is_set():
                    break
                self.feed(chunk)
        except Exception as e:
            if self._stopping.is_set():
                logger.debug(f"{self.name} log stream closed: {e}")
            else:
                logger.warning(f"{self.name} log stream failed: {e}")
        finally:
            self._finished.set()
            if not self.signal.is_ready and not self._stopping.is_set():
                logger.warning(
                    f"{self.name} output ended before {self.marker!r} was seen"
                )

    def _log_chunk(self, text: str) -> None:
        for line in text.splitlines():
            if line.strip():
                self._output_logger.info(line)
