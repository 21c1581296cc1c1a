"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings
from .exceptions import (
    ConnectionConfigError,
    ConnectionNotReadyError,
    ContainerStartError,
    CredentialsError,
    FatalError,
    HarnessError,
    QueryError,
    ReadinessTimeoutError,
    RetryableError,
    RetryExhaustedError,
    ServiceNotReadyError,
)
from .logging import get_logger, setup_logging


__all__ = [
    "ConnectionConfigError",
    "ConnectionNotReadyError",
    "ContainerStartError",
    "CredentialsError",
    "FatalError",
    "HarnessError",
    "QueryError",
    "ReadinessTimeoutError",
    "RetryExhaustedError",
    "RetryableError",
    "ServiceNotReadyError",
    "Settings",
    "get_logger",
    "get_settings",
    "setup_logging",
]
