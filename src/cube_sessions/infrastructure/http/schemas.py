"""Request models and response schemas for the session HTTP API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from cube_sessions.application.dto.session import (
    ContainerView,
    CreateSessionRequest,
    PortMappingSpec,
)
from cube_sessions.domain.container import ContainerState, ImageInfo
from cube_sessions.domain.session import PortBinding, Session

# --- Requests ---


class PortMappingDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    container_port: int
    protocol: str | None = None
    description: str | None = None


class CreateSessionDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_name: str
    num_ports: int = 0
    port_mappings: tuple[PortMappingDTO, ...] = ()

    def to_request(self) -> CreateSessionRequest:
        return CreateSessionRequest(
            image_name=self.image_name,
            num_ports=self.num_ports,
            port_mappings=tuple(
                PortMappingSpec(
                    container_port=mapping.container_port,
                    protocol=mapping.protocol,
                    description=mapping.description,
                )
                for mapping in self.port_mappings
            ),
        )


# --- Responses ---


@dataclass(frozen=True, slots=True)
class PortBindingModel:
    host_port: int
    container_port: int
    protocol: str
    description: str
    url: str | None = None


@dataclass(frozen=True, slots=True)
class SessionModel:
    id: str
    created_at: datetime
    image_name: str
    container_id: str
    ports: list[PortBindingModel]
    status: str


@dataclass(frozen=True, slots=True)
class ContainerStateModel:
    running: bool
    started_at: datetime | None
    restart_count: int
    status: str


@dataclass(frozen=True, slots=True)
class SessionResponse:
    session: SessionModel


@dataclass(frozen=True, slots=True)
class SessionDetailsResponse:
    session: SessionModel
    container: ContainerStateModel | None


@dataclass(frozen=True, slots=True)
class SessionListResponse:
    sessions: list[SessionModel]


@dataclass(frozen=True, slots=True)
class ImageModel:
    id: str
    name: str
    tag: str
    size: str
    created: str
    exposed_ports: list[int]


@dataclass(frozen=True, slots=True)
class ImageListResponse:
    images: list[ImageModel]


@dataclass(frozen=True, slots=True)
class PublishedPortModel:
    host_port: int
    container_port: int
    protocol: str


@dataclass(frozen=True, slots=True)
class ContainerModel:
    id: str
    name: str
    image: str
    command: str
    status: str
    state: str
    created: int
    ports: list[PublishedPortModel]
    session_id: str | None
    is_managed: bool


@dataclass(frozen=True, slots=True)
class ContainerListResponse:
    containers: list[ContainerModel]


@dataclass(frozen=True, slots=True)
class MessageResponse:
    message: str


@dataclass(frozen=True, slots=True)
class BulkDeleteResponse:
    count: int
    message: str


@dataclass(frozen=True, slots=True)
class HealthResponse:
    status: str


# --- Serialization ---


def serialize_binding(binding: PortBinding) -> PortBindingModel:
    return PortBindingModel(
        host_port=binding.host_port,
        container_port=binding.container_port,
        protocol=binding.protocol.value,
        description=binding.description,
        url=binding.url,
    )


def serialize_session(session: Session) -> SessionModel:
    return SessionModel(
        id=session.session_id,
        created_at=session.created_at,
        image_name=session.image_name,
        container_id=session.container_id,
        ports=[serialize_binding(binding) for binding in session.ports],
        status=session.status.value,
    )


def serialize_container_state(state: ContainerState | None) -> ContainerStateModel | None:
    if state is None:
        return None
    return ContainerStateModel(
        running=state.running,
        started_at=state.started_at,
        restart_count=state.restart_count,
        status=state.status,
    )


def serialize_image(image: ImageInfo) -> ImageModel:
    return ImageModel(
        id=image.image_id,
        name=image.repository,
        tag=image.tag,
        size=image.size,
        created=image.created,
        exposed_ports=list(image.exposed_ports),
    )


def serialize_container(view: ContainerView) -> ContainerModel:
    container = view.container
    return ContainerModel(
        id=container.container_id,
        name=container.name,
        image=container.image,
        command=container.command,
        status=container.status,
        state=container.state,
        created=container.created,
        ports=[
            PublishedPortModel(
                host_port=port.host_port,
                container_port=port.container_port,
                protocol=port.protocol.value,
            )
            for port in container.ports
        ],
        session_id=view.session_id,
        is_managed=view.is_managed,
    )


__all__ = [
    "BulkDeleteResponse",
    "ContainerListResponse",
    "ContainerModel",
    "ContainerStateModel",
    "CreateSessionDTO",
    "HealthResponse",
    "ImageListResponse",
    "ImageModel",
    "MessageResponse",
    "PortBindingModel",
    "PortMappingDTO",
    "PublishedPortModel",
    "SessionDetailsResponse",
    "SessionListResponse",
    "SessionModel",
    "SessionResponse",
    "serialize_binding",
    "serialize_container",
    "serialize_container_state",
    "serialize_image",
    "serialize_session",
]
