"""HTTP route definitions for the session API."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cube_sessions.application.session_service import SessionService
from cube_sessions.errors import ErrorKind, SessionError, error_kind
from cube_sessions.infrastructure.http.schemas import (
    BulkDeleteResponse,
    ContainerListResponse,
    CreateSessionDTO,
    HealthResponse,
    ImageListResponse,
    MessageResponse,
    SessionDetailsResponse,
    SessionListResponse,
    SessionResponse,
    serialize_container,
    serialize_container_state,
    serialize_image,
    serialize_session,
)

logger = logging.getLogger("cube_sessions.http")

API_PREFIX = "/api/v1"

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_REQUEST: 400,
}


@dataclass(frozen=True)
class SessionRouteDeps:
    service: SessionService


def status_for(exc: BaseException) -> int:
    return _STATUS_BY_KIND.get(error_kind(exc), 500)


def add_error_handlers(app: FastAPI) -> None:
    """Render failures as ``{"error": message}`` with a kind-derived status."""

    async def handle_session_error(request: Request, exc: Exception) -> JSONResponse:
        status_code = status_for(exc)
        message = exc.message if isinstance(exc, SessionError) else str(exc)
        log = logger.warning if status_code < 500 else logger.error
        log(
            "request rejected",
            extra={
                "data": {
                    "path": request.url.path,
                    "status_code": status_code,
                    "kind": error_kind(exc).value,
                    "error": message,
                }
            },
        )
        return JSONResponse(status_code=status_code, content={"error": message})

    async def handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
        errors = exc.errors() if isinstance(exc, RequestValidationError) else []
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in errors
        )
        return JSONResponse(
            status_code=400,
            content={"error": f"invalid request body: {details}" if details else "invalid request body"},
        )

    app.add_exception_handler(SessionError, handle_session_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)


def add_health_route(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse, description="Liveness check.")
    def health() -> HealthResponse:
        return HealthResponse(status="ok")


def add_session_routes(app: FastAPI, deps_provider: Callable[[], SessionRouteDeps]) -> None:
    def get_deps() -> SessionRouteDeps:
        return deps_provider()

    @app.post(
        f"{API_PREFIX}/sessions",
        response_model=SessionResponse,
        status_code=201,
        description="Provision a container session with leased host ports.",
    )
    def create_session(
        payload: CreateSessionDTO,
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> SessionResponse:
        session = deps.service.create_session(payload.to_request())
        return SessionResponse(session=serialize_session(session))

    @app.get(
        f"{API_PREFIX}/sessions",
        response_model=SessionListResponse,
        description="List live sessions after reconciling against the container engine.",
    )
    def list_sessions(
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> SessionListResponse:
        sessions = deps.service.list_sessions()
        return SessionListResponse(sessions=[serialize_session(session) for session in sessions])

    @app.get(
        f"{API_PREFIX}/sessions/{{session_id}}",
        response_model=SessionDetailsResponse,
        description="Return a session together with its live container state.",
    )
    def get_session(
        session_id: str,
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> SessionDetailsResponse:
        details = deps.service.inspect_session(session_id)
        return SessionDetailsResponse(
            session=serialize_session(details.session),
            container=serialize_container_state(details.container),
        )

    @app.delete(
        f"{API_PREFIX}/sessions/{{session_id}}",
        response_model=MessageResponse,
        description="Stop and remove a session's container and release its ports.",
    )
    def delete_session(
        session_id: str,
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> MessageResponse:
        deps.service.delete_session(session_id)
        return MessageResponse(message="session deleted successfully")

    @app.delete(
        f"{API_PREFIX}/sessions",
        response_model=BulkDeleteResponse,
        description="Tear down every tracked session.",
    )
    def delete_all_sessions(
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> BulkDeleteResponse:
        result = deps.service.delete_all_sessions()
        return BulkDeleteResponse(count=result.count, message="sessions deleted successfully")

    @app.get(
        f"{API_PREFIX}/images",
        response_model=ImageListResponse,
        description="List images available to the container engine.",
    )
    def list_images(
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> ImageListResponse:
        images = deps.service.list_images()
        return ImageListResponse(images=[serialize_image(image) for image in images])

    @app.get(
        f"{API_PREFIX}/containers",
        response_model=ContainerListResponse,
        description="List engine containers, marking those owned by a session.",
    )
    def list_containers(
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> ContainerListResponse:
        views = deps.service.list_containers()
        return ContainerListResponse(containers=[serialize_container(view) for view in views])

    @app.delete(
        f"{API_PREFIX}/containers/{{container_id}}",
        response_model=MessageResponse,
        description="Remove a container; session-owned containers end their session.",
    )
    def delete_container(
        container_id: str,
        deps: SessionRouteDeps = Depends(get_deps),  # noqa: B008
    ) -> MessageResponse:
        deps.service.delete_container(container_id)
        return MessageResponse(message="container deleted successfully")


__all__ = [
    "API_PREFIX",
    "SessionRouteDeps",
    "add_error_handlers",
    "add_health_route",
    "add_session_routes",
    "status_for",
]
