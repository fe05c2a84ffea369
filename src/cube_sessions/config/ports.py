"""Host port leasing settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PortSettings(BaseSettings):
    """Port leasing limits and the host advertised in access URLs."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    bind_host: str = Field(default="0.0.0.0", alias="CUBE_PORT_BIND_HOST")  # noqa: S104
    lease_attempts: int = Field(default=64, ge=1, alias="CUBE_PORT_LEASE_ATTEMPTS")
    max_ports_per_session: int = Field(default=32, ge=1, alias="CUBE_MAX_PORTS_PER_SESSION")
    access_host: str | None = Field(
        default=None,
        alias="CUBE_ACCESS_HOST",
        description="Host used in access URLs; discovered from interfaces when unset.",
    )


__all__ = ["PortSettings"]
