"""Harness exceptions.

Retry decisions are made on the class hierarchy: ``RetryableError`` subclasses
are retried within the budget, everything else aborts the retry loop at once.
"""

from __future__ import annotations

from typing import Any


class HarnessError(Exception):
    """Base harness exception with a structured representation."""

    error_code: str = "HARNESS_ERROR"
    message: str = "Smoke test harness failure"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict suitable for structured logs."""
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class ContainerStartError(HarnessError):
    """A container could not be created or inspected."""

    error_code = "CONTAINER_START_FAILED"
    message = "Failed to start container"


class ReadinessTimeoutError(HarnessError):
    """A service never became ready within its retry budget."""

    error_code = "READINESS_TIMEOUT"
    message = "Service did not become ready in time"


class RetryExhaustedError(HarnessError):
    """The retry budget ran out without a successful attempt."""

    error_code = "RETRY_EXHAUSTED"
    message = "Retry budget exhausted"

    def __init__(
        self,
        message: str | None = None,
        attempts: int = 0,
        last_error: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        details = {
            "attempts": attempts,
            **({"last_error": str(last_error)} if last_error else {}),
            **(details or {}),
        }
        super().__init__(message, details=details)


class RetryableError(HarnessError):
    """Transient failure; the attempt may be repeated."""

    error_code = "RETRYABLE"
    message = "Transient failure"


class ServiceNotReadyError(RetryableError):
    """The readiness marker has not been observed yet."""

    error_code = "SERVICE_NOT_READY"
    message = "Service not ready"


class ConnectionNotReadyError(RetryableError):
    """Connection refused, timed out or not yet in a ready state."""

    error_code = "CONNECTION_NOT_READY"
    message = "Connection not ready"


class FatalError(HarnessError):
    """Failure that retrying cannot fix."""

    error_code = "FATAL"
    message = "Fatal failure"


class ConnectionConfigError(FatalError):
    """Malformed address or invalid connection parameters."""

    error_code = "CONNECTION_CONFIG_ERROR"
    message = "Invalid connection parameters"


class CredentialsError(FatalError):
    """Credentials were rejected by the remote service."""

    error_code = "CREDENTIALS_REJECTED"
    message = "Credentials rejected"


class QueryError(HarnessError):
    """The example query failed or returned nothing."""

    error_code = "QUERY_FAILED"
    message = "Query failed"
