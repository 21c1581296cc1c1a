"""Readiness detection from process output."""

from stargate_smoke.readiness.log_watcher import LogWatcher
from stargate_smoke.readiness.signal import ReadinessSignal, ReadinessState

__all__ = [
    "LogWatcher",
    "ReadinessSignal",
    "ReadinessState",
]
