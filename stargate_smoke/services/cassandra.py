"""Cassandra container definition and CQL session probe."""

from __future__ import annotations

from typing import Any, Callable

from cassandra import AuthenticationFailed, OperationTimedOut
from cassandra.cluster import Cluster, NoHostAvailable

from stargate_smoke.core.config import Settings
from stargate_smoke.core.exceptions import (
    ConnectionConfigError,
    ConnectionNotReadyError,
    CredentialsError,
)
from stargate_smoke.core.logging import get_logger
from stargate_smoke.services.containers import ContainerSpec


logger = get_logger("services.cassandra")


def cassandra_spec(settings: Settings) -> ContainerSpec:
    """Single-node Cassandra that seeds itself."""
    return ContainerSpec(
        name="cassandra",
        image=settings.cassandra_image,
        tag=settings.cassandra_tag,
        hostname=settings.cassandra_hostname,
        env={
            "HEAP_NEWSIZE": settings.cassandra_heap_newsize,
            "MAX_HEAP_SIZE": settings.cassandra_max_heap_size,
            "CASSANDRA_SEEDS": settings.cassandra_hostname,
            "CASSANDRA_CLUSTER_NAME": settings.cassandra_cluster_name,
        },
        exposed_ports=(settings.cassandra_port,),
        auto_remove=settings.docker_auto_remove,
    )


class CassandraProbe:
    """
    One attempt at opening a CQL session.

    Cassandra opens its native port before it has finished bootstrapping,
    so this is only meaningful once the readiness marker was logged.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        cluster_factory: Callable[..., Any] = Cluster,
    ):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.cluster_factory = cluster_factory

    def __call__(self) -> bool:
        if not self.host or not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConnectionConfigError(
                f"Invalid Cassandra address {self.host}:{self.port}",
                details={"host": self.host, "port": self.port},
            )

        logger.debug(f"Opening CQL session to {self.host}:{self.port}")
        cluster = self.cluster_factory(
            contact_points=[self.host],
            port=self.port,
            connect_timeout=self.connect_timeout,
            control_connection_timeout=self.connect_timeout,
        )
        try:
            session = cluster.connect()
            session.shutdown()
        except AuthenticationFailed as e:
            raise CredentialsError(f"Cassandra rejected credentials: {e}") from e
        except NoHostAvailable as e:
            if any(isinstance(err, AuthenticationFailed) for err in e.errors.values()):
                raise CredentialsError(f"Cassandra rejected credentials: {e}") from e
            raise ConnectionNotReadyError(f"error creating session: {e}") from e
        except (OperationTimedOut, OSError) as e:
            raise ConnectionNotReadyError(f"error creating session: {e}") from e
        finally:
            cluster.shutdown()

        logger.info(f"CQL session to {self.host}:{self.port} established")
        return True
