"""Configuration helpers for service runtime wiring."""

from __future__ import annotations

import logging
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from cube_sessions.config.docker import DockerSettings
from cube_sessions.config.observability import ObservabilitySettings
from cube_sessions.config.ports import PortSettings

DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


class Settings(BaseSettings):
    """Service configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # --- Server ---
    listen_host: str = Field(default="0.0.0.0", alias="CUBE_HOST")  # noqa: S104
    listen_port: int = Field(default=8080, alias="CUBE_PORT")
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_CORS_ORIGINS, alias="CUBE_CORS_ORIGINS"
    )

    # --- Component settings ---
    docker: DockerSettings = Field(default_factory=DockerSettings)
    ports: PortSettings = Field(default_factory=PortSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(origin.strip() for origin in value.split(",") if origin.strip())
        return value

    # --- Loader ---
    @classmethod
    def load(cls) -> Settings:
        instance = cls()
        logger = logging.getLogger("cube_sessions.settings")
        logger.info("service settings loaded: %r", instance)
        return instance


__all__ = ["Settings"]
