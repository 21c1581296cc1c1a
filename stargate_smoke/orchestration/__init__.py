"""Service orchestration."""

from stargate_smoke.orchestration.driver import (
    SmokeTestDriver,
    Stage,
    run_smoke_test,
    verify_result,
)

__all__ = [
    "SmokeTestDriver",
    "Stage",
    "run_smoke_test",
    "verify_result",
]
