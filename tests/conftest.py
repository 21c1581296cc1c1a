"""Pytest configuration and fixtures."""

from __future__ import annotations

import logging

import pytest

from stargate_smoke.core.config import Settings
from tests.fakes import (
    FakeDockerClient,
    SleepRecorder,
    cassandra_script,
    stargate_script,
)


@pytest.fixture
def settings() -> Settings:
    """Settings with fast retry budgets and short test markers."""
    return Settings(
        _env_file=None,
        cassandra_ready_marker="ready-A",
        stargate_ready_marker="ready-B",
        ready_max_attempts=500,
        ready_delay=0.01,
        ready_max_duration=None,
        log_format="text",
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Records sleeps of the retry loop without waiting."""
    return SleepRecorder()


@pytest.fixture
def docker_client() -> FakeDockerClient:
    """Fake docker client with healthy Cassandra and Stargate scripts."""
    return FakeDockerClient(
        {
            "cassandra": cassandra_script(),
            "stargateio/stargate-3_11": stargate_script(),
        }
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
