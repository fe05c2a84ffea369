"""Typed views of container engine state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from cube_sessions.domain.session import Protocol


@dataclass(frozen=True, slots=True)
class ContainerState:
    """Subset of container inspection the core relies on."""

    running: bool
    started_at: datetime | None
    restart_count: int
    status: str


@dataclass(frozen=True, slots=True)
class PublishedPort:
    """Port triple reported by the engine for a container."""

    host_port: int
    container_port: int
    protocol: Protocol = Protocol.TCP


@dataclass(frozen=True, slots=True)
class ContainerSummary:
    """One row of the engine's container listing."""

    container_id: str
    names: tuple[str, ...] = ()
    image: str = ""
    command: str = ""
    status: str = ""
    state: str = ""
    created: int = 0
    ports: tuple[PublishedPort, ...] = ()

    @property
    def name(self) -> str:
        if not self.names:
            return ""
        return self.names[0].lstrip("/")


@dataclass(frozen=True, slots=True)
class ImageInfo:
    """Locally available image and the ports its metadata exposes."""

    image_id: str
    repository: str
    tag: str
    size: str = ""
    created: str = ""
    exposed_ports: tuple[int, ...] = field(default_factory=tuple)

    @property
    def reference(self) -> str:
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return self.repository

    def matches(self, image_name: str) -> bool:
        return image_name in (self.reference, self.repository)


__all__ = ["ContainerState", "ContainerSummary", "ImageInfo", "PublishedPort"]
