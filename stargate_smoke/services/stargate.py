"""
Stargate container definition, token auth and gRPC session.

Stargate needs a running Cassandra seed, serves gRPC on 8090 and issues
auth tokens over HTTP on 8081. A connection attempt is only successful once
the gRPC channel has reached READY, not merely been created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Optional

import grpc
import httpx

from stargate_smoke.core.config import Settings
from stargate_smoke.core.exceptions import (
    ConnectionConfigError,
    ConnectionNotReadyError,
    ContainerStartError,
    CredentialsError,
    QueryError,
)
from stargate_smoke.core.logging import get_logger
from stargate_smoke.services.containers import ContainerSpec


logger = get_logger("services.stargate")

TOKEN_HEADER = "x-cassandra-token"


def stargate_spec(settings: Settings, seed_address: str) -> ContainerSpec:
    """Stargate coordinator joining the cluster through seed_address."""
    if not seed_address:
        raise ContainerStartError("Stargate needs the Cassandra seed address")

    return ContainerSpec(
        name="stargate",
        image=settings.stargate_image,
        tag=settings.stargate_tag,
        hostname=settings.stargate_hostname,
        env={
            "JAVA_OPTS": settings.stargate_java_opts,
            "CLUSTER_NAME": settings.cassandra_cluster_name,
            "CLUSTER_VERSION": settings.stargate_cluster_version,
            "SEED": seed_address,
            "RACK_NAME": settings.stargate_rack_name,
            "DATACENTER_NAME": settings.stargate_datacenter_name,
            "ENABLE_AUTH": "true" if settings.stargate_enable_auth else "false",
        },
        exposed_ports=(settings.stargate_grpc_port, settings.stargate_auth_port),
        auto_remove=settings.docker_auto_remove,
    )


def parse_target(address: str) -> tuple[str, int]:
    """Split and validate a host:port target."""
    host, sep, port_text = (address or "").rpartition(":")
    if not sep or not host or not port_text.isdigit():
        raise ConnectionConfigError(
            f"Malformed address {address!r}, expected host:port",
            details={"address": address},
        )
    port = int(port_text)
    if not 0 < port < 65536:
        raise ConnectionConfigError(
            f"Port out of range in {address!r}",
            details={"address": address},
        )
    return host, port


@dataclass(frozen=True)
class GrpcBackoff:
    """
    Reconnect backoff for the gRPC channel.

    gRPC Python only exposes the base and max delays as channel args. The
    multiplier and jitter are fixed by the core library and cannot be tuned.
    """

    MULTIPLIER: ClassVar[float] = 1.6
    JITTER: ClassVar[float] = 0.2

    base_delay: float = 1.0
    max_delay: float = 20.0

    def channel_options(self) -> list[tuple[str, int]]:
        base_ms = int(self.base_delay * 1000)
        return [
            ("grpc.initial_reconnect_backoff_ms", base_ms),
            ("grpc.min_reconnect_backoff_ms", base_ms),
            ("grpc.max_reconnect_backoff_ms", int(self.max_delay * 1000)),
        ]


class TokenProvider:
    """Fetches (and caches) a table-based auth token from Stargate's auth API."""

    def __init__(
        self,
        auth_url: str,
        username: str,
        password: str,
        timeout: float = 5.0,
        http_post: Callable[..., httpx.Response] = httpx.post,
    ):
        self.auth_url = auth_url
        self.username = username
        self._password = password
        self.timeout = timeout
        self.http_post = http_post
        self._token: Optional[str] = None

    def token(self) -> str:
        if self._token is None:
            self._token = self._fetch()
        return self._token

    def metadata(self) -> tuple[tuple[str, str], ...]:
        """Per-call gRPC metadata carrying the token."""
        return ((TOKEN_HEADER, self.token()),)

    def reset(self) -> None:
        self._token = None

    def _fetch(self) -> str:
        try:
            response = self.http_post(
                self.auth_url,
                json={"username": self.username, "password": self._password},
                timeout=self.timeout,
            )
        except httpx.TransportError as e:
            raise ConnectionNotReadyError(
                f"Auth endpoint {self.auth_url} unreachable: {e}"
            ) from e

        if response.status_code in (401, 403):
            raise CredentialsError(
                f"Stargate rejected credentials for {self.username!r}",
                details={"status": response.status_code},
            )
        if response.status_code >= 500:
            raise ConnectionNotReadyError(
                f"Auth endpoint returned {response.status_code}",
                details={"status": response.status_code},
            )
        if response.status_code >= 400:
            raise ConnectionConfigError(
                f"Auth request refused with {response.status_code}",
                details={"status": response.status_code},
            )

        try:
            token = response.json().get("authToken")
        except ValueError as e:
            raise ConnectionConfigError(f"Auth response is not JSON: {e}") from e
        if not token:
            raise ConnectionConfigError("Auth response has no authToken")

        logger.debug(f"Obtained auth token from {self.auth_url}")
        return token


@dataclass
class QueryResult:
    """Result of a CQL query run through the gateway."""

    query: str
    rows: list[tuple[str, ...]]
    columns: list[str] = field(default_factory=list)

    @property
    def scalar(self) -> Any:
        """Get single scalar value from result."""
        if not self.rows:
            return None
        return self.rows[0][0]

    @property
    def count(self) -> int:
        """Get row count."""
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows


def format_rows(result: QueryResult) -> str:
    """Render rows one per line, cells separated by spaces."""
    return "\n".join(" ".join(row) for row in result.rows)


def _format_value(value: Any) -> str:
    fields = value.ListFields()
    if not fields:
        return "null"
    descriptor, inner = fields[0]
    if descriptor.name in ("null", "unset"):
        return descriptor.name
    if isinstance(inner, bytes):
        return inner.hex()
    if hasattr(inner, "ListFields"):
        return " ".join(str(inner).split())
    return str(inner)


def _default_stub(channel: grpc.Channel) -> Any:
    from stargate import stargate_pb2_grpc

    return stargate_pb2_grpc.StargateStub(channel)


def _default_query(cql: str) -> Any:
    from stargate import query_pb2

    return query_pb2.Query(cql=cql)


class StargateSession:
    """Live, READY gRPC channel to Stargate plus its auth token."""

    def __init__(
        self,
        channel: grpc.Channel,
        stub: Any,
        token_provider: TokenProvider,
        query_factory: Callable[[str], Any] = _default_query,
    ):
        self.channel = channel
        self.stub = stub
        self.token_provider = token_provider
        self.query_factory = query_factory

    def execute_query(self, cql: str, timeout: float = 10.0) -> QueryResult:
        """Run one unparameterized CQL statement."""
        logger.info(f"Executing: {cql}")
        try:
            response = self.stub.ExecuteQuery(
                self.query_factory(cql),
                metadata=self.token_provider.metadata(),
                timeout=timeout,
            )
        except grpc.RpcError as e:
            raise QueryError(
                f"ExecuteQuery failed: {e}", details={"query": cql}
            ) from e

        if response is None or not response.HasField("result_set"):
            raise QueryError("Response carries no result set", details={"query": cql})

        result_set = response.result_set
        return QueryResult(
            query=cql,
            columns=[column.name for column in result_set.columns],
            rows=[tuple(_format_value(v) for v in row.values) for row in result_set.rows],
        )

    def close(self) -> None:
        self.channel.close()


class StargateConnector:
    """One attempt at a READY, authenticated gRPC session."""

    def __init__(
        self,
        target: str,
        token_provider: TokenProvider,
        backoff: Optional[GrpcBackoff] = None,
        ready_timeout: float = 10.0,
        channel_factory: Callable[..., grpc.Channel] = grpc.insecure_channel,
        ready_future: Callable[[grpc.Channel], Any] = grpc.channel_ready_future,
        stub_factory: Callable[[grpc.Channel], Any] = _default_stub,
    ):
        self.target = target
        self.token_provider = token_provider
        self.backoff = backoff or GrpcBackoff()
        self.ready_timeout = ready_timeout
        self.channel_factory = channel_factory
        self.ready_future = ready_future
        self.stub_factory = stub_factory

    def __call__(self) -> StargateSession:
        parse_target(self.target)
        self.token_provider.token()

        logger.debug(f"Dialing {self.target}")
        channel = self.channel_factory(
            self.target, options=self.backoff.channel_options()
        )
        try:
            self.ready_future(channel).result(timeout=self.ready_timeout)
            logger.info(f"gRPC channel to {self.target} is READY")
            stub = self.stub_factory(channel)
        except grpc.FutureTimeoutError as e:
            channel.close()
            raise ConnectionNotReadyError(
                f"not ready: channel to {self.target} not READY after {self.ready_timeout}s"
            ) from e
        except Exception:
            channel.close()
            raise

        return StargateSession(channel, stub, self.token_provider)
