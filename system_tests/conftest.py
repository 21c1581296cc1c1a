"""
System Test Configuration - pytest fixtures for real containers.

The containers themselves are owned by SmokeTestDriver; fixtures here only
provide settings, logging and a docker runtime, and skip the whole suite when
docker is not available.
"""

from __future__ import annotations

from typing import Generator

import pytest

from stargate_smoke.core.config import Settings, get_settings
from stargate_smoke.core.logging import setup_logging
from stargate_smoke.services.containers import ContainerRuntime


# =============================================================================
# CONFIGURATION
# =============================================================================


@pytest.fixture(scope="session")
def smoke_settings() -> Settings:
    """Load harness settings from SMOKE_* environment variables."""
    return get_settings()


@pytest.fixture(scope="session", autouse=True)
def configure_logging(smoke_settings: Settings) -> None:
    """Stream harness progress and container output to the console."""
    setup_logging(smoke_settings)


# =============================================================================
# DOCKER RUNTIME
# =============================================================================


@pytest.fixture(scope="session")
def docker_runtime(
    smoke_settings: Settings,
) -> Generator[ContainerRuntime, None, None]:
    """Docker runtime, or skip when no daemon answers."""
    try:
        runtime = ContainerRuntime(stop_timeout=smoke_settings.container_stop_timeout)
        runtime.client.ping()
    except Exception as e:
        pytest.skip(f"Docker daemon not available: {e}")

    yield runtime
    runtime.close()


# =============================================================================
# PYTEST HOOKS
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "smoke: Quick sanity check for critical functionality",
    )
    config.addinivalue_line(
        "markers",
        "slow: Test that takes more than 10 seconds",
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "/smoke/" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)
            item.add_marker(pytest.mark.slow)
