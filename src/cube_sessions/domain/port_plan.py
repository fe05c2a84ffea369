"""Port plan derivation for new sessions."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final

from cube_sessions.domain.container import ImageInfo
from cube_sessions.domain.session import PortRequest, Protocol

FIRST_GENERIC_CONTAINER_PORT: Final[int] = 8080
DEFAULT_PORT: Final[PortRequest] = PortRequest(
    container_port=80, protocol=Protocol.TCP, description="HTTP"
)

WELL_KNOWN_PORTS: Final[dict[int, str]] = {
    80: "HTTP",
    8080: "HTTP",
    443: "HTTPS",
    8443: "HTTPS",
    22: "SSH",
    3306: "MySQL",
    5432: "PostgreSQL",
    27017: "MongoDB",
    6379: "Redis",
}

_HTTPS_PORTS: Final[frozenset[int]] = frozenset({443, 8443})


class PlanSource(str, Enum):
    """Which rule produced a port plan."""

    EXPLICIT = "explicit"
    COUNT = "count"
    IMAGE = "image"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class PortPlan:
    source: PlanSource
    ports: tuple[PortRequest, ...]


def describe_port(container_port: int) -> str:
    return WELL_KNOWN_PORTS.get(container_port, f"Port {container_port}")


def access_url(*, host: str, host_port: int, container_port: int, protocol: Protocol) -> str | None:
    """Return the URL clients use to reach a published port, if it has one."""
    if protocol is not Protocol.TCP:
        return None
    scheme = "https" if container_port in _HTTPS_PORTS else "http"
    return f"{scheme}://{host}:{host_port}"


def derive_port_plan(
    *,
    image_name: str,
    mappings: Sequence[PortRequest] = (),
    num_ports: int = 0,
    list_images: Callable[[], Sequence[ImageInfo]],
) -> PortPlan:
    """Resolve the container ports a session publishes.

    Rules are tried in order: explicit mappings, a requested port count, the
    ports exposed by the matching local image, then a single HTTP port.
    ``list_images`` is only called when the first two rules do not apply.
    """

    if mappings:
        return PortPlan(source=PlanSource.EXPLICIT, ports=tuple(mappings))

    if num_ports > 0:
        ports = tuple(
            PortRequest(
                container_port=FIRST_GENERIC_CONTAINER_PORT + index,
                protocol=Protocol.TCP,
                description=f"Port {index + 1}",
            )
            for index in range(num_ports)
        )
        return PortPlan(source=PlanSource.COUNT, ports=ports)

    exposed = _exposed_ports(image_name, list_images())
    if exposed:
        ports = tuple(
            PortRequest(container_port=port, protocol=Protocol.TCP, description=describe_port(port))
            for port in exposed
        )
        return PortPlan(source=PlanSource.IMAGE, ports=ports)

    return PortPlan(source=PlanSource.DEFAULT, ports=(DEFAULT_PORT,))


def _exposed_ports(image_name: str, images: Sequence[ImageInfo]) -> tuple[int, ...]:
    for image in images:
        if image.matches(image_name):
            return image.exposed_ports
    return ()


__all__ = [
    "DEFAULT_PORT",
    "FIRST_GENERIC_CONTAINER_PORT",
    "PlanSource",
    "PortPlan",
    "WELL_KNOWN_PORTS",
    "access_url",
    "derive_port_plan",
    "describe_port",
]
