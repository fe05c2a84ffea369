"""Docker engine settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DockerPullPolicy = Literal["always", "missing", "never"]


class DockerSettings(BaseSettings):
    """How session containers are launched."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    docker_binary: str = Field(default="docker", alias="CUBE_DOCKER_BINARY")
    pull_policy: DockerPullPolicy = Field(default="missing", alias="CUBE_DOCKER_PULL_POLICY")
    publish_host: str = Field(default="0.0.0.0", alias="CUBE_DOCKER_PUBLISH_HOST")  # noqa: S104
    stop_timeout_seconds: int = Field(default=10, ge=0, alias="CUBE_DOCKER_STOP_TIMEOUT")
    command_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        alias="CUBE_DOCKER_COMMAND_TIMEOUT",
        description="Upper bound for a single docker CLI invocation (seconds).",
    )


__all__ = ["DockerPullPolicy", "DockerSettings"]
