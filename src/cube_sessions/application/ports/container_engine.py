"""Port describing the container engine primitives the core consumes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from cube_sessions.domain.container import ContainerState, ContainerSummary, ImageInfo
from cube_sessions.domain.session import PortBinding


class ContainerEnginePort(Protocol):
    """Blocking container engine gateway.

    Every method may take up to tens of seconds and raises
    ``UpstreamError`` when the engine call fails.
    """

    def create_and_start(self, image: str, bindings: Sequence[PortBinding]) -> str:
        """Create and start a container publishing ``bindings``; return its id."""

    def stop(self, container_id: str) -> None:
        """Stop the container."""

    def remove(self, container_id: str, *, force: bool = True) -> None:
        """Remove the container."""

    def exists(self, container_id: str) -> bool:
        """Return whether the engine still knows the container."""

    def inspect(self, container_id: str) -> ContainerState:
        """Return the container's run state; ``NotFoundError`` when it is gone."""

    def list_images(self) -> list[ImageInfo]:
        """Return locally available images with their exposed ports."""

    def list_containers(self, *, include_all: bool = True) -> list[ContainerSummary]:
        """Return containers known to the engine, managed or not."""


__all__ = ["ContainerEnginePort"]
