"""
Sequential retry loop.

A probe is a zero-argument callable. It returns a value on success, raises a
RetryableError subclass when the attempt may be repeated and raises anything
else to abort immediately.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_any,
)

from stargate_smoke.core.exceptions import (
    RetryableError,
    RetryExhaustedError,
    ServiceNotReadyError,
)
from stargate_smoke.core.logging import get_logger
from stargate_smoke.readiness.signal import ReadinessSignal
from stargate_smoke.retry.policy import RetryPolicy


logger = get_logger("retry")

T = TypeVar("T")


def retry(
    probe: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    rng: Optional[random.Random] = None,
    description: str = "probe",
) -> T:
    """
    Invoke probe until it succeeds or the policy's budget runs out.

    Raises:
        RetryExhaustedError: every attempt raised a RetryableError
        Exception: any non-retryable error raised by the probe, unchanged
    """
    started = clock()

    def _out_of_time(retry_state: RetryCallState) -> bool:
        if policy.max_duration is None:
            return False
        return clock() - started >= policy.max_duration

    def _wait(retry_state: RetryCallState) -> float:
        return policy.delay_for(retry_state.attempt_number, rng)

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.debug(
            f"{description} attempt {retry_state.attempt_number}/{policy.max_attempts} "
            f"failed: {error}; retrying in {wait:.2f}s"
        )

    retrying = Retrying(
        stop=stop_any(stop_after_attempt(policy.max_attempts), _out_of_time),
        wait=_wait,
        retry=retry_if_exception_type(RetryableError),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=False,
    )

    try:
        return retrying(probe)
    except RetryError as e:
        attempts = e.last_attempt.attempt_number
        last_error = e.last_attempt.exception()
        logger.error(f"{description} gave up after {attempts} attempt(s): {last_error}")
        raise RetryExhaustedError(
            f"{description} did not succeed after {attempts} attempt(s)",
            attempts=attempts,
            last_error=last_error,
        ) from last_error


def readiness_gated(
    signal: ReadinessSignal,
    probe: Callable[[], T],
    service: Optional[str] = None,
) -> Callable[[], T]:
    """Wrap probe so it only runs once signal is READY."""
    name = service or signal.name

    def gated() -> T:
        if not signal.is_ready:
            raise ServiceNotReadyError(
                f"{name} not ready", details={"state": signal.state.value}
            )
        return probe()

    return gated
