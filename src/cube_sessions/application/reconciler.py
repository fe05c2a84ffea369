"""Pull-based reconciliation of tracked sessions against the container engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.application.ports.port_allocator import PortAllocatorPort
from cube_sessions.application.ports.session_registry import SessionRegistryPort
from cube_sessions.domain.session import Session, SessionStatus
from cube_sessions.errors import SessionError

logger = logging.getLogger("cube_sessions.reconciler")


@dataclass(frozen=True)
class ReconcileReport:
    sessions: list[Session] = field(default_factory=list)
    purged: list[str] = field(default_factory=list)


class Reconciler:
    """Purges sessions whose container vanished outside this service.

    An existence check that errors is treated as ambiguous: the session is
    kept and marked ``unknown`` rather than purged. Callers hold the registry's
    ``exclusive()`` lock while reconciling.
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

    def reconcile(self) -> ReconcileReport:
        survivors: list[Session] = []
        vanished: list[Session] = []

        for session in self._registry.snapshot():
            try:
                exists = self._engine.exists(session.container_id)
            except SessionError as exc:
                logger.warning(
                    "failed to check if container %s exists: %s",
                    session.container_id,
                    exc,
                    extra={"data": {"session_id": session.session_id}},
                )
                survivors.append(self._mark(session, SessionStatus.UNKNOWN))
                continue

            if not exists:
                logger.info(
                    "container %s for session %s no longer exists",
                    session.container_id,
                    session.session_id,
                )
                vanished.append(session)
                continue

            if session.status is SessionStatus.UNKNOWN:
                session = self._mark(session, SessionStatus.RUNNING)
            survivors.append(session)

        for session in vanished:
            self._purge(session)

        if vanished:
            logger.info(
                "reconciled %d sessions (purged %d orphaned)",
                len(survivors),
                len(vanished),
                extra={"data": {"purged": [session.session_id for session in vanished]}},
            )
        return ReconcileReport(
            sessions=survivors,
            purged=[session.session_id for session in vanished],
        )

    def _mark(self, session: Session, status: SessionStatus) -> Session:
        updated = self._registry.update_status(session.session_id, status)
        return updated if updated is not None else session.with_status(status)

    def _purge(self, session: Session) -> None:
        logger.info("auto-cleaning session %s with missing container", session.session_id)
        self._allocator.release_all(session.host_ports)
        self._registry.remove(session.session_id)


__all__ = ["ReconcileReport", "Reconciler"]
