"""Harness settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from stargate_smoke.retry.policy import RetryPolicy
    from stargate_smoke.services.stargate import GrpcBackoff


class Settings(BaseSettings):
    """Smoke test settings loaded from SMOKE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SMOKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Docker
    docker_auto_remove: bool = Field(
        default=True, description="Let the daemon remove containers once stopped"
    )
    container_stop_timeout: int = Field(
        default=10, ge=0, description="Seconds to wait for a container to stop"
    )

    # Cassandra (service A)
    cassandra_image: str = Field(default="cassandra")
    cassandra_tag: str = Field(default="3.11.13")
    cassandra_hostname: str = Field(default="backend-1")
    cassandra_cluster_name: str = Field(default="c3-cluster")
    cassandra_heap_newsize: str = Field(default="128M")
    cassandra_max_heap_size: str = Field(default="1024M")
    cassandra_port: str = Field(default="9042/tcp")
    cassandra_ready_marker: str = Field(
        default="Created default superuser role",
        description="Log line proving Cassandra finished bootstrapping",
    )
    cassandra_connect_timeout: float = Field(default=5.0, gt=0)

    # Stargate (service B)
    stargate_image: str = Field(default="stargateio/stargate-3_11")
    stargate_tag: str = Field(default="v1.0.77")
    stargate_hostname: str = Field(default="stargate")
    stargate_java_opts: str = Field(default="-Xmx2G")
    stargate_cluster_version: str = Field(default="3.11")
    stargate_rack_name: str = Field(default="rack1")
    stargate_datacenter_name: str = Field(default="datacenter1")
    stargate_enable_auth: bool = Field(default=True)
    stargate_grpc_port: str = Field(default="8090/tcp")
    stargate_auth_port: str = Field(default="8081/tcp")
    stargate_auth_path: str = Field(default="/v1/auth")
    stargate_ready_marker: str = Field(
        default="Finished starting bundles.",
        description="Log line proving Stargate loaded all its bundles",
    )
    stargate_username: str = Field(default="cassandra")
    stargate_password: SecretStr = Field(default=SecretStr("cassandra"))
    stargate_channel_ready_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for the channel to be READY"
    )
    stargate_auth_timeout: float = Field(default=5.0, gt=0)

    # gRPC connection backoff
    grpc_base_delay: float = Field(default=1.0, gt=0)
    grpc_max_delay: float = Field(default=20.0, gt=0)

    # Readiness retry budget (applied to every wait)
    ready_max_attempts: int = Field(default=120, ge=1)
    ready_delay: float = Field(default=1.0, ge=0)
    ready_backoff_multiplier: float = Field(default=1.0, ge=1.0)
    ready_jitter: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Fraction of each delay to randomize"
    )
    ready_max_delay: Optional[float] = Field(default=None, gt=0)
    ready_max_duration: Optional[float] = Field(
        default=300.0, gt=0, description="Overall deadline for one readiness wait"
    )
    ready_span_chunks: bool = Field(
        default=False,
        description="Detect readiness markers split across log chunks",
    )

    # Example query
    example_query: str = Field(default="SELECT * FROM system.local")
    query_timeout: float = Field(default=10.0, gt=0)

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")
    debug: bool = Field(default=False, description="Add source locations to logs")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    @property
    def cassandra_image_ref(self) -> str:
        return f"{self.cassandra_image}:{self.cassandra_tag}"

    @property
    def stargate_image_ref(self) -> str:
        return f"{self.stargate_image}:{self.stargate_tag}"

    def readiness_policy(self) -> "RetryPolicy":
        """Build the retry policy used while waiting for a service."""
        from stargate_smoke.retry.policy import RetryPolicy

        return RetryPolicy(
            max_attempts=self.ready_max_attempts,
            max_duration=self.ready_max_duration,
            delay=self.ready_delay,
            backoff_multiplier=self.ready_backoff_multiplier,
            max_delay=self.ready_max_delay,
            jitter=self.ready_jitter,
        )

    def grpc_backoff(self) -> "GrpcBackoff":
        """Build the gRPC connect backoff parameters."""
        from stargate_smoke.services.stargate import GrpcBackoff

        return GrpcBackoff(
            base_delay=self.grpc_base_delay,
            max_delay=self.grpc_max_delay,
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()
