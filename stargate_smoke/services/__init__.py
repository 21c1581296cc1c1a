"""Service containers and their connection bootstrappers."""

from stargate_smoke.services.containers import (
    ContainerRuntime,
    ContainerSpec,
    ServiceContainer,
)

__all__ = [
    "ContainerRuntime",
    "ContainerSpec",
    "ServiceContainer",
]
