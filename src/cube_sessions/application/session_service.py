"""Session orchestration use cases exposed to the HTTP layer."""

from __future__ import annotations

import logging

from cube_sessions.application.deletion import SessionDeleter
from cube_sessions.application.dto.session import (
    BulkDeletionResult,
    ContainerView,
    CreateSessionRequest,
    SessionDetails,
)
from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.application.ports.session_registry import SessionRegistryPort
from cube_sessions.application.provisioning import ProvisioningWorkflow
from cube_sessions.application.reconciler import Reconciler
from cube_sessions.domain.container import ContainerState, ImageInfo
from cube_sessions.domain.session import Session, SessionStatus
from cube_sessions.errors import NotFoundError, UpstreamError

logger = logging.getLogger("cube_sessions.service")


class SessionService:
    """Coordinates provisioning, listing, inspection and teardown.

    Listing and every teardown path run under the registry's exclusive lock,
    engine round trips included. Provisioning only takes the lock for its
    final insert, so slow image pulls do not block unrelated sessions.
    """

    def __init__(
        self,
        *,
        engine: ContainerEnginePort,
        registry: SessionRegistryPort,
        provisioning: ProvisioningWorkflow,
        reconciler: Reconciler,
        deleter: SessionDeleter,
    ) -> None:
        self._engine = engine
        self._registry = registry
        self._provisioning = provisioning
        self._reconciler = reconciler
        self._deleter = deleter

    def create_session(self, request: CreateSessionRequest) -> Session:
        return self._provisioning.provision(request)

    def list_sessions(self) -> list[Session]:
        with self._registry.exclusive():
            report = self._reconciler.reconcile()
        logger.info(
            "listed %d sessions (removed %d orphaned sessions)",
            len(report.sessions),
            len(report.purged),
        )
        return report.sessions

    def get_session(self, session_id: str) -> Session:
        session = self._registry.get(session_id)
        if session is None:
            raise NotFoundError(f"session {session_id} not found")
        return session

    def inspect_session(self, session_id: str) -> SessionDetails:
        """Return the session with live container state, refreshing its status."""
        with self._registry.exclusive():
            session = self.get_session(session_id)
            try:
                state = self._engine.inspect(session.container_id)
            except NotFoundError:
                logger.warning(
                    "container %s for session %s is gone",
                    session.container_id,
                    session_id,
                )
                updated = self._registry.update_status(session_id, SessionStatus.ERROR)
                return SessionDetails(session=updated or session, container=None)

            updated = self._registry.update_status(session_id, _status_from_state(state))
            return SessionDetails(session=updated or session, container=state)

    def delete_session(self, session_id: str) -> None:
        with self._registry.exclusive():
            self._deleter.delete(session_id)

    def delete_all_sessions(self) -> BulkDeletionResult:
        with self._registry.exclusive():
            return self._deleter.delete_all()

    def list_images(self) -> list[ImageInfo]:
        logger.info("listing docker images")
        try:
            images = self._engine.list_images()
        except UpstreamError as exc:
            raise UpstreamError(f"failed to list images: {exc.message}") from exc
        logger.info("listed %d docker images", len(images))
        return images

    def list_containers(self) -> list[ContainerView]:
        try:
            containers = self._engine.list_containers(include_all=True)
        except UpstreamError as exc:
            raise UpstreamError(f"failed to list containers: {exc.message}") from exc
        owners = {session.container_id: session.session_id for session in self._registry.snapshot()}
        return [
            ContainerView(container=container, session_id=owners.get(container.container_id))
            for container in containers
        ]

    def delete_container(self, container_id: str) -> None:
        with self._registry.exclusive():
            self._deleter.delete_container(container_id)


def _status_from_state(state: ContainerState) -> SessionStatus:
    if state.running:
        return SessionStatus.RUNNING
    if state.status == "dead":
        return SessionStatus.ERROR
    return SessionStatus.STOPPED


__all__ = ["SessionService"]
