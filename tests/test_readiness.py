"""Tests for readiness detection.

Tests verify:
- ReadinessSignal transitions are monotonic and READY happens once
- LogWatcher flags readiness on an intact marker, once
- The per-chunk baseline misses markers split across chunks
- span_chunks=True catches split markers
- Stream end and stop() terminate the watcher thread
"""

from __future__ import annotations

import threading

import pytest

from stargate_smoke.readiness.log_watcher import LogWatcher
from stargate_smoke.readiness.signal import ReadinessSignal, ReadinessState
from tests.fakes import FakeLogStream


MARKER = "Created default superuser role"


# =============================================================================
# ReadinessSignal
# =============================================================================


class TestReadinessSignal:
    """Tests for ReadinessSignal."""

    def test_initial_state(self):
        """Signal starts NOT_STARTED and not ready."""
        signal = ReadinessSignal("cassandra")
        assert signal.state == ReadinessState.NOT_STARTED
        assert not signal.is_ready

    def test_begin_moves_to_waiting(self):
        signal = ReadinessSignal()
        signal.begin()
        assert signal.state == ReadinessState.WAITING

    def test_mark_ready_only_once(self):
        """Only the first mark_ready() reports the transition."""
        signal = ReadinessSignal()
        signal.begin()

        assert signal.mark_ready() is True
        assert signal.mark_ready() is False
        assert signal.state == ReadinessState.READY
        assert signal.is_ready

    def test_ready_never_goes_back(self):
        """begin() after READY does not reset the state."""
        signal = ReadinessSignal()
        signal.mark_ready()
        signal.begin()
        assert signal.state == ReadinessState.READY

    def test_wait_times_out(self):
        signal = ReadinessSignal()
        assert signal.wait(timeout=0.01) is False

    def test_ready_visible_from_other_thread(self):
        """A READY set by a writer thread is seen by the waiting thread."""
        signal = ReadinessSignal()
        writer = threading.Thread(target=signal.mark_ready)
        writer.start()

        assert signal.wait(timeout=2.0) is True
        writer.join()
        assert signal.is_ready


# =============================================================================
# LogWatcher.feed
# =============================================================================


class TestLogWatcherFeed:
    """Synchronous chunk processing."""

    def test_marker_in_single_chunk(self):
        """An intact marker flips the signal and fires the callback once."""
        signal = ReadinessSignal("cassandra")
        callbacks = []
        watcher = LogWatcher([], MARKER, signal, on_ready=lambda: callbacks.append(1), echo=lambda s: None)

        assert watcher.feed(b"INFO starting\n") is False
        assert watcher.feed(f"INFO {MARKER} 'cassandra'\n".encode()) is True
        assert watcher.feed(f"INFO {MARKER} again\n".encode()) is False

        assert signal.is_ready
        assert callbacks == [1]

    def test_marker_split_across_chunks_is_missed(self):
        """Baseline: a marker split across two chunks is not detected."""
        signal = ReadinessSignal()
        watcher = LogWatcher([], MARKER, signal, echo=lambda s: None)

        watcher.feed(b"INFO Created default su")
        watcher.feed(b"peruser role 'cassandra'\n")

        assert not signal.is_ready

    def test_span_chunks_catches_split_marker(self):
        """span_chunks=True finds a marker split across chunks."""
        signal = ReadinessSignal()
        watcher = LogWatcher([], MARKER, signal, echo=lambda s: None, span_chunks=True)

        watcher.feed(b"INFO Created default su")
        assert not signal.is_ready
        assert watcher.feed(b"peruser role 'cassandra'\n") is True
        assert signal.is_ready

    def test_span_chunks_does_not_double_fire(self):
        """Carried-over text cannot re-trigger after READY."""
        signal = ReadinessSignal()
        callbacks = []
        watcher = LogWatcher(
            [], "ready", signal, on_ready=lambda: callbacks.append(1),
            echo=lambda s: None, span_chunks=True,
        )

        watcher.feed("rea")
        watcher.feed("dy")
        watcher.feed("ready")

        assert callbacks == [1]

    def test_echo_receives_decoded_chunks(self):
        """Every chunk is echoed, invalid bytes replaced."""
        echoed = []
        watcher = LogWatcher([], MARKER, ReadinessSignal(), echo=echoed.append)

        watcher.feed(b"line one\n")
        watcher.feed(b"bad \xff byte\n")

        assert echoed[0] == "line one\n"
        assert "\ufffd" in echoed[1]

    def test_callback_error_keeps_signal_ready(self):
        """A failing on_ready callback does not undo readiness."""
        def boom():
            raise RuntimeError("callback failed")

        signal = ReadinessSignal()
        watcher = LogWatcher([], MARKER, signal, on_ready=boom, echo=lambda s: None)

        assert watcher.feed(MARKER) is True
        assert signal.is_ready

    def test_empty_marker_rejected(self):
        with pytest.raises(ValueError):
            LogWatcher([], "", ReadinessSignal())


# =============================================================================
# LogWatcher thread
# =============================================================================


class TestLogWatcherThread:
    """Background tailing."""

    def test_start_detects_marker(self):
        """Watcher thread flips the signal while the caller polls."""
        signal = ReadinessSignal("cassandra")
        stream = FakeLogStream([b"booting\n", b"still booting\n", f"{MARKER}\n".encode()])
        watcher = LogWatcher(stream, MARKER, signal, echo=lambda s: None).start()

        assert signal.wait(timeout=2.0)
        assert watcher.join(timeout=2.0)
        watcher.stop()

    def test_start_moves_signal_to_waiting(self):
        signal = ReadinessSignal()
        watcher = LogWatcher(FakeLogStream([]), MARKER, signal, echo=lambda s: None)
        watcher.start()
        watcher.join(timeout=2.0)

        assert signal.state == ReadinessState.WAITING

    def test_stream_end_without_marker(self):
        """Process output ending early leaves the signal WAITING."""
        signal = ReadinessSignal()
        watcher = LogWatcher(
            FakeLogStream([b"Created default su", b"peruser role\n"]),
            MARKER,
            signal,
            echo=lambda s: None,
        ).start()

        assert watcher.join(timeout=2.0)
        assert watcher.finished
        assert signal.state == ReadinessState.WAITING

        watcher.stop()
        assert not watcher.running

    def test_stream_error_ends_thread(self):
        """A broken stream terminates the watcher instead of hanging."""
        def broken():
            yield b"partial output\n"
            raise ConnectionError("socket closed")

        signal = ReadinessSignal()
        watcher = LogWatcher(broken(), MARKER, signal, echo=lambda s: None).start()

        assert watcher.join(timeout=2.0)
        assert not signal.is_ready

    def test_stop_closes_stream(self):
        """stop() closes the underlying stream and is idempotent."""
        stream = FakeLogStream([b"a\n", b"b\n"])
        watcher = LogWatcher(stream, MARKER, ReadinessSignal(), echo=lambda s: None).start()

        watcher.stop()
        watcher.stop()

        assert stream.closed
        assert not watcher.running

    def test_cannot_start_twice(self):
        watcher = LogWatcher(FakeLogStream([]), MARKER, ReadinessSignal(), echo=lambda s: None)
        watcher.start()

        with pytest.raises(RuntimeError):
            watcher.start()
        watcher.stop()

    def test_default_echo_logs_lines(self, caplog):
        """Without an echo, output goes to the container logger line by line."""
        signal = ReadinessSignal("cassandra")
        watcher = LogWatcher([], MARKER, signal)

        with caplog.at_level("INFO", logger="stargate_smoke.logs.cassandra"):
            watcher.feed(b"first line\n\nsecond line\n")

        messages = [r.getMessage() for r in caplog.records if r.name == "stargate_smoke.logs.cassandra"]
        assert messages == ["first line", "second line"]
