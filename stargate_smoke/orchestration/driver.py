"""
Smoke Test Driver - Brings up Cassandra and Stargate and runs one query.

Stages, strictly in order:

    INIT -> START_CASSANDRA -> WAIT_READY_CASSANDRA
         -> START_STARGATE -> WAIT_READY_STARGATE -> WAIT_CONNECT_STARGATE
         -> RUN_QUERY -> ASSERT_RESULT -> TEARDOWN

Every container started is registered on an ExitStack, so TEARDOWN stops it
whether the run succeeds, an assertion fails or an earlier stage raises.
"""

from __future__ import annotations

import time
from contextlib import ExitStack
from enum import Enum
from typing import Any, Callable, Optional

from stargate_smoke.core.config import Settings, get_settings
from stargate_smoke.core.exceptions import (
    QueryError,
    ReadinessTimeoutError,
    RetryExhaustedError,
)
from stargate_smoke.core.logging import get_logger
from stargate_smoke.retry.loop import readiness_gated, retry
from stargate_smoke.services.cassandra import CassandraProbe, cassandra_spec
from stargate_smoke.services.containers import ContainerRuntime, ServiceContainer
from stargate_smoke.services.stargate import (
    QueryResult,
    StargateConnector,
    StargateSession,
    TokenProvider,
    format_rows,
    stargate_spec,
)


logger = get_logger("orchestration.driver")


class Stage(str, Enum):
    """Driver stages in execution order."""

    INIT = "INIT"
    START_CASSANDRA = "START_CASSANDRA"
    WAIT_READY_CASSANDRA = "WAIT_READY_CASSANDRA"
    START_STARGATE = "START_STARGATE"
    WAIT_READY_STARGATE = "WAIT_READY_STARGATE"
    WAIT_CONNECT_STARGATE = "WAIT_CONNECT_STARGATE"
    RUN_QUERY = "RUN_QUERY"
    ASSERT_RESULT = "ASSERT_RESULT"
    TEARDOWN = "TEARDOWN"


def cassandra_probe(service: ServiceContainer, settings: Settings) -> Callable[[], Any]:
    return CassandraProbe(
        "localhost",
        service.host_port(settings.cassandra_port),
        connect_timeout=settings.cassandra_connect_timeout,
    )


def stargate_connector(
    service: ServiceContainer, settings: Settings
) -> Callable[[], StargateSession]:
    auth_url = f"http://{service.host_address(settings.stargate_auth_port)}{settings.stargate_auth_path}"
    tokens = TokenProvider(
        auth_url,
        settings.stargate_username,
        settings.stargate_password.get_secret_value(),
        timeout=settings.stargate_auth_timeout,
    )
    return StargateConnector(
        service.host_address(settings.stargate_grpc_port),
        tokens,
        backoff=settings.grpc_backoff(),
        ready_timeout=settings.stargate_channel_ready_timeout,
    )


def verify_result(result: Optional[QueryResult]) -> QueryResult:
    """The smoke check: the query produced a result handle."""
    if result is None:
        raise QueryError("Query returned no result")
    return result


class SmokeTestDriver:
    """
    Sequences both services, the readiness waits and the example query.

    Usage:
        driver = SmokeTestDriver(ContainerRuntime(), get_settings())
        result = driver.run()
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        settings: Optional[Settings] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        cassandra_probe_factory: Callable[..., Callable[[], Any]] = cassandra_probe,
        stargate_connector_factory: Callable[..., Callable[[], Any]] = stargate_connector,
        echo: Callable[[str], Any] = print,
    ):
        self.runtime = runtime
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.cassandra_probe_factory = cassandra_probe_factory
        self.stargate_connector_factory = stargate_connector_factory
        self.echo = echo
        self.stage = Stage.INIT
        self.history: list[Stage] = [Stage.INIT]
        self.services: list[ServiceContainer] = []
        self.result: Optional[QueryResult] = None
        self.failed_stage: Optional[Stage] = None

    def run(self) -> QueryResult:
        settings = self.settings
        try:
            with ExitStack() as stack:
                try:
                    self._enter(Stage.START_CASSANDRA)
                    cassandra = self._start(stack, cassandra_spec(settings))
                    self.runtime.watch(
                        cassandra,
                        settings.cassandra_ready_marker,
                        span_chunks=settings.ready_span_chunks,
                    )

                    self._enter(Stage.WAIT_READY_CASSANDRA)
                    self._wait(
                        cassandra,
                        lambda: self.cassandra_probe_factory(cassandra, settings)(),
                        "session",
                    )

                    self._enter(Stage.START_STARGATE)
                    stargate = self._start(
                        stack, stargate_spec(settings, cassandra.ip_address)
                    )
                    self.runtime.watch(
                        stargate,
                        settings.stargate_ready_marker,
                        span_chunks=settings.ready_span_chunks,
                    )

                    self._enter(Stage.WAIT_READY_STARGATE)
                    self._wait(stargate, lambda: True, "readiness")

                    self._enter(Stage.WAIT_CONNECT_STARGATE)
                    session = self._wait(
                        stargate,
                        lambda: self.stargate_connector_factory(stargate, settings)(),
                        "connection",
                    )
                    stack.callback(session.close)

                    self._enter(Stage.RUN_QUERY)
                    self.result = session.execute_query(
                        settings.example_query, timeout=settings.query_timeout
                    )
                    self.echo(format_rows(self.result))

                    self._enter(Stage.ASSERT_RESULT)
                    return verify_result(self.result)
                except Exception:
                    self.failed_stage = self.stage
                    raise
                finally:
                    self._enter(Stage.TEARDOWN)
        except Exception as e:
            if self.failed_stage is None:
                self.failed_stage = self.stage
            logger.error(f"Smoke test failed during {self.failed_stage.value}: {e}")
            raise

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        self.history.append(stage)
        logger.info(f"Stage {stage.value}")

    def _start(self, stack: ExitStack, spec) -> ServiceContainer:
        service = stack.enter_context(self.runtime.running(spec))
        self.services.append(service)
        return service

    def _wait(self, service: ServiceContainer, probe: Callable[[], Any], what: str) -> Any:
        description = f"{service.name} {what}"
        try:
            return retry(
                readiness_gated(service.signal, probe, service.name),
                self.settings.readiness_policy(),
                sleep=self.sleep,
                description=description,
            )
        except RetryExhaustedError as e:
            raise ReadinessTimeoutError(
                f"{description} not established: {e.last_error}",
                details={"service": service.name, "attempts": e.attempts},
            ) from e


def run_smoke_test(settings: Optional[Settings] = None) -> QueryResult:
    """Run the full smoke test against a local docker daemon."""
    settings = settings or get_settings()
    runtime = ContainerRuntime(stop_timeout=settings.container_stop_timeout)
    try:
        return SmokeTestDriver(runtime, settings).run()
    finally:
        runtime.close()
