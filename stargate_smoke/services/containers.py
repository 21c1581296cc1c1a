"""
Container Runtime - Starts, inspects and tears down service containers.

Every container started here is owned by whoever called start(); nothing else
stops it. running() is the scoped form that guarantees teardown.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

import docker
from docker.errors import DockerException, NotFound

from stargate_smoke.core.exceptions import ContainerStartError
from stargate_smoke.core.logging import get_logger
from stargate_smoke.readiness.log_watcher import LogWatcher
from stargate_smoke.readiness.signal import ReadinessSignal

if TYPE_CHECKING:
    from docker.models.containers import Container


logger = get_logger("services.containers")


@dataclass(frozen=True)
class ContainerSpec:
    """Everything needed to start one service container."""

    name: str
    image: str
    tag: str
    hostname: Optional[str] = None
    env: dict[str, str] = field(default_factory=dict)
    exposed_ports: tuple[str, ...] = ()
    auto_remove: bool = True
    restart_policy: str = "no"

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.tag}"

    def environment(self) -> list[str]:
        """Environment in KEY=VALUE form, as the docker API expects."""
        return [f"{key}={value}" for key, value in self.env.items()]


class ServiceContainer:
    """
    Handle for one running service container.

    Holds the docker container, its readiness signal and the watcher
    tailing its logs.
    """

    def __init__(
        self,
        spec: ContainerSpec,
        container: "Container",
        stop_timeout: int = 10,
    ):
        self.spec = spec
        self.container = container
        self.stop_timeout = stop_timeout
        self.signal = ReadinessSignal(spec.name)
        self.watcher: Optional[LogWatcher] = None
        self.stopped = False

    @property
    def id(self) -> str:
        return self.container.id

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def ip_address(self) -> str:
        """Container IP on the bridge network, reachable from sibling containers."""
        self._reload()
        settings = self.container.attrs.get("NetworkSettings", {})
        address = settings.get("IPAddress") or ""
        if not address:
            for network in (settings.get("Networks") or {}).values():
                address = network.get("IPAddress") or ""
                if address:
                    break
        if not address:
            raise ContainerStartError(
                f"Container {self.name} has no IP address",
                details={"container_id": self.id},
            )
        return address

    def host_port(self, port: str) -> int:
        """Host port that the daemon published for a container port like '9042/tcp'."""
        self._reload()
        bindings = (self.container.ports or {}).get(port) or []
        for binding in bindings:
            host_port = binding.get("HostPort")
            if host_port:
                return int(host_port)
        raise ContainerStartError(
            f"Port {port} of {self.name} is not published",
            details={"container_id": self.id, "ports": self.container.ports},
        )

    def host_address(self, port: str, host: str = "localhost") -> str:
        """host:port string for reaching a container port from the host."""
        return f"{host}:{self.host_port(port)}"

    def stop(self) -> None:
        """Stop log tailing and the container. Safe to call more than once."""
        if self.stopped:
            return
        self.stopped = True

        if self.watcher is not None:
            self.watcher.stop()

        try:
            self.container.stop(timeout=self.stop_timeout)
            if not self.spec.auto_remove:
                self.container.remove(force=True)
        except NotFound:
            logger.debug(f"Container {self.name} already removed")
        except DockerException as e:
            logger.warning(f"Failed to stop container {self.name}: {e}")
        else:
            logger.info(f"Stopped {self.name} ({self.id[:12]})")

    def _reload(self) -> None:
        try:
            self.container.reload()
        except DockerException as e:
            raise ContainerStartError(
                f"Cannot inspect container {self.name}: {e}",
                details={"container_id": self.id},
            ) from e

    def __repr__(self) -> str:
        return f"ServiceContainer(name={self.name!r}, id={self.id[:12]!r})"


class ContainerRuntime:
    """
    Thin wrapper over the docker SDK client.

    Usage:
        runtime = ContainerRuntime()
        with runtime.running(cassandra_spec(settings)) as cassandra:
            runtime.watch(cassandra, "Created default superuser role")
            ...
    """

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        stop_timeout: int = 10,
    ):
        if client is None:
            try:
                client = docker.from_env()
            except DockerException as e:
                raise ContainerStartError(f"Docker daemon unavailable: {e}") from e
        self.client = client
        self.stop_timeout = stop_timeout

    def start(self, spec: ContainerSpec) -> ServiceContainer:
        """Create and start a container. Nothing needs cleanup if this raises."""
        logger.info(f"Starting {spec.name} from {spec.image_ref}")
        try:
            container = self.client.containers.run(
                spec.image_ref,
                detach=True,
                hostname=spec.hostname,
                environment=spec.environment(),
                ports={port: None for port in spec.exposed_ports},
                auto_remove=spec.auto_remove,
                restart_policy={"Name": spec.restart_policy},
            )
        except DockerException as e:
            raise ContainerStartError(
                f"Failed to create {spec.name}: {e}",
                details={"image": spec.image_ref},
            ) from e

        handle = ServiceContainer(spec, container, stop_timeout=self.stop_timeout)
        logger.info(f"Started {spec.name} ({handle.id[:12]})")
        return handle

    def watch(
        self,
        service: ServiceContainer,
        marker: str,
        on_ready: Optional[Callable[[], Any]] = None,
        span_chunks: bool = False,
    ) -> LogWatcher:
        """Follow the container's stdout/stderr and flag readiness on marker."""
        if service.watcher is not None:
            raise RuntimeError(f"{service.name} is already being watched")

        stream = service.container.logs(
            stdout=True,
            stderr=True,
            stream=True,
            follow=True,
            timestamps=True,
        )
        watcher = LogWatcher(
            stream,
            marker,
            service.signal,
            on_ready=on_ready,
            span_chunks=span_chunks,
            name=service.name,
        )
        service.watcher = watcher
        return watcher.start()

    @contextmanager
    def running(self, spec: ContainerSpec) -> Iterator[ServiceContainer]:
        """Start a container and stop it on every exit path."""
        service = self.start(spec)
        try:
            yield service
        finally:
            service.stop()

    def close(self) -> None:
        self.client.close()
