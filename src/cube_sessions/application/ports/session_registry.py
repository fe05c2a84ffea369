"""Port describing tracked session state access."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol

from cube_sessions.domain.session import Session, SessionStatus


class SessionRegistryPort(Protocol):
    """Single source of truth mapping session ids to session snapshots."""

    def exclusive(self) -> AbstractContextManager[None]:
        """Hold the registry lock across a multi-step operation."""

    def insert(self, session: Session) -> None:
        """Store a fully provisioned session."""

    def get(self, session_id: str) -> Session | None:
        """Return the session identified by ``session_id``."""

    def find_by_container(self, container_id: str) -> Session | None:
        """Return the session backed by ``container_id``, if any."""

    def snapshot(self) -> list[Session]:
        """Return every tracked session in creation order."""

    def update_status(self, session_id: str, status: SessionStatus) -> Session | None:
        """Store a new status and return the updated snapshot."""

    def remove(self, session_id: str) -> Session | None:
        """Remove the session, returning it when it was present."""

    def __len__(self) -> int:
        ...


__all__ = ["SessionRegistryPort"]
