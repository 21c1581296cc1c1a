"""Retry loop and budget."""

from stargate_smoke.retry.loop import readiness_gated, retry
from stargate_smoke.retry.policy import RetryPolicy

__all__ = [
    "RetryPolicy",
    "readiness_gated",
    "retry",
]
