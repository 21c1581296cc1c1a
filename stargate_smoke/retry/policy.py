"""Retry budget and backoff schedule."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry budget.

    Attributes:
        max_attempts: Maximum number of probe invocations
        max_duration: Optional wall-clock budget in seconds, checked after each failure
        delay: Sleep before the second attempt
        backoff_multiplier: Factor applied to the delay after every attempt
        max_delay: Optional cap for a single sleep
        jitter: Fraction of the delay to randomize, 0.2 means +/-20%
    """

    max_attempts: int = 10
    max_duration: Optional[float] = None
    delay: float = 1.0
    backoff_multiplier: float = 1.0
    max_delay: Optional[float] = None
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.max_duration is not None and self.max_duration <= 0:
            raise ValueError("max_duration must be positive")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to sleep after the given (1-based) failed attempt."""
        delay = self.delay * self.backoff_multiplier ** max(attempt - 1, 0)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            source = rng or random
            delay *= 1 + source.uniform(-self.jitter, self.jitter)
        return max(0.0, delay)
