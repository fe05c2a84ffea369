"""DTOs for session orchestration use cases."""

from __future__ import annotations

from dataclasses import dataclass, field

from cube_sessions.domain.container import ContainerState, ContainerSummary
from cube_sessions.domain.session import Session


@dataclass(frozen=True)
class PortMappingSpec:
    """Caller-supplied container port; protocol and description are optional."""

    container_port: int
    protocol: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class CreateSessionRequest:
    """Input payload for provisioning a session."""

    image_name: str
    num_ports: int = 0
    port_mappings: tuple[PortMappingSpec, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SessionDetails:
    """Session snapshot alongside the live container state."""

    session: Session
    container: ContainerState | None


@dataclass(frozen=True)
class BulkDeletionResult:
    """Outcome of tearing down every tracked session."""

    count: int
    errors: tuple[Exception, ...] = ()


@dataclass(frozen=True)
class ContainerView:
    """Engine container annotated with the session that owns it."""

    container: ContainerSummary
    session_id: str | None = None

    @property
    def is_managed(self) -> bool:
        return self.session_id is not None


__all__ = [
    "BulkDeletionResult",
    "ContainerView",
    "CreateSessionRequest",
    "PortMappingSpec",
    "SessionDetails",
]
