"""Session records pairing one container with its leased host ports."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class SessionStatus(str, Enum):
    """Lifecycle states reported for container sessions."""

    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"
    UNKNOWN = "unknown"


class Protocol(str, Enum):
    """Transport protocol of a published port."""

    TCP = "tcp"
    UDP = "udp"

    @classmethod
    def parse(cls, value: str | None) -> Protocol:
        if not value:
            return cls.TCP
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"unsupported protocol: {value!r}") from exc


@dataclass(frozen=True, slots=True)
class PortRequest:
    """A container port that still needs a host port."""

    container_port: int
    protocol: Protocol = Protocol.TCP
    description: str = ""

    def __post_init__(self) -> None:
        if not 1 <= self.container_port <= 65535:
            raise ValueError(f"container_port out of range: {self.container_port}")


@dataclass(frozen=True, slots=True)
class PortBinding:
    """Host port published for a container port."""

    host_port: int
    container_port: int
    protocol: Protocol = Protocol.TCP
    description: str = ""
    url: str | None = None


@dataclass(frozen=True, slots=True)
class Session:
    """Immutable snapshot of a tracked session."""

    session_id: str
    created_at: datetime
    image_name: str
    container_id: str
    ports: tuple[PortBinding, ...] = field(default_factory=tuple)
    status: SessionStatus = SessionStatus.RUNNING

    def __post_init__(self) -> None:
        if not self.session_id:
            raise ValueError("session_id must be non-empty")
        if not self.container_id:
            raise ValueError("container_id must be non-empty")

    @property
    def host_ports(self) -> tuple[int, ...]:
        return tuple(binding.host_port for binding in self.ports)

    def with_status(self, status: SessionStatus) -> Session:
        """Return a copy carrying ``status``."""
        if status is self.status:
            return self
        return replace(self, status=status)


__all__ = [
    "PortBinding",
    "PortRequest",
    "Protocol",
    "Session",
    "SessionStatus",
]
