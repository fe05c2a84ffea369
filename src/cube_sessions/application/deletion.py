"""Session teardown: single, bulk, and by container handle."""

from __future__ import annotations

import logging

from cube_sessions.application.dto.session import BulkDeletionResult
from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.application.ports.port_allocator import PortAllocatorPort
from cube_sessions.application.ports.session_registry import SessionRegistryPort
from cube_sessions.domain.session import Session
from cube_sessions.errors import NotFoundError, SessionError, UpstreamError

logger = logging.getLogger("cube_sessions.deletion")


class SessionDeleter:
    """Tears sessions down and reclaims their host ports.

    Single deletion is strict: when the container cannot be removed the
    session and its ports are kept so the caller can retry. Bulk deletion is
    best effort: every session is reclaimed whatever the engine answers.
    """

    def __init__(
        self,
        *,
        engine: ContainerEnginePort,
        allocator: PortAllocatorPort,
        registry: SessionRegistryPort,
    ) -> None:
        self._engine = engine
        self._allocator = allocator
        self._registry = registry

    def delete(self, session_id: str) -> Session:
        session = self._registry.get(session_id)
        if session is None:
            logger.warning("session not found: %s", session_id)
            raise NotFoundError(f"session {session_id} not found")

        self._stop_best_effort(session.container_id)
        try:
            self._engine.remove(session.container_id, force=True)
        except SessionError as exc:
            logger.error(
                "failed to remove container %s for session %s; keeping session",
                session.container_id,
                session_id,
                extra={"data": {"error": str(exc)}},
            )
            raise UpstreamError(f"failed to remove container: {exc.message}") from exc

        self._reclaim(session)
        logger.info("deleted session %s", session_id)
        return session

    def delete_all(self) -> BulkDeletionResult:
        session_ids = [session.session_id for session in self._registry.snapshot()]
        if not session_ids:
            logger.info("no sessions to delete")
            return BulkDeletionResult(count=0)

        logger.info("deleting all %d sessions", len(session_ids))
        count = 0
        errors: list[Exception] = []
        for session_id in session_ids:
            session = self._registry.get(session_id)
            if session is None:
                continue
            self._stop_best_effort(session.container_id)
            try:
                self._engine.remove(session.container_id, force=True)
            except SessionError as exc:
                logger.error("failed to remove container %s: %s", session.container_id, exc)
                errors.append(exc)
            self._reclaim(session)
            count += 1

        logger.info(
            "deleted %d sessions",
            count,
            extra={"data": {"errors": [str(error) for error in errors]}},
        )
        if count == 0 and errors:
            raise errors[0]
        return BulkDeletionResult(count=count, errors=tuple(errors))

    def delete_container(self, container_id: str) -> None:
        """Delete any engine container, routing session-owned ones through ``delete``."""
        if not self._engine.exists(container_id):
            raise NotFoundError(f"container {container_id} not found")

        owner = self._registry.find_by_container(container_id)
        if owner is not None:
            self.delete(owner.session_id)
            return

        self._stop_best_effort(container_id)
        try:
            self._engine.remove(container_id, force=True)
        except SessionError as exc:
            raise UpstreamError(f"failed to remove container: {exc.message}") from exc
        logger.info("deleted unmanaged container %s", container_id)

    def _stop_best_effort(self, container_id: str) -> None:
        try:
            self._engine.stop(container_id)
        except SessionError as exc:
            logger.warning(
                "docker stop failed (ignored): %s",
                exc,
                extra={"data": {"container": container_id}},
            )

    def _reclaim(self, session: Session) -> None:
        logger.debug("releasing ports for session %s", session.session_id)
        self._allocator.release_all(session.host_ports)
        self._registry.remove(session.session_id)


__all__ = ["SessionDeleter"]
