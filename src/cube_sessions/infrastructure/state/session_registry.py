"""In-memory session registry implementation."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import RLock

from cube_sessions.application.ports.session_registry import SessionRegistryPort
from cube_sessions.domain.session import Session, SessionStatus
from cube_sessions.errors import InvalidRequestError


class InMemorySessionRegistry(SessionRegistryPort):
    """Stores session snapshots in memory behind one re-entrant lock.

    Service operations hold ``exclusive()`` for their whole duration, engine
    round trips included, so inserts, deletes, purges and the list pass never
    interleave. Individual calls take the same lock, which is re-entrant.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._by_container: dict[str, str] = {}
        self._lock = RLock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._lock:
            yield

    def insert(self, session: Session) -> None:
        with self._lock:
            if session.session_id in self._sessions:
                raise InvalidRequestError(f"session {session.session_id} already exists")
            owner = self._by_container.get(session.container_id)
            if owner is not None:
                raise InvalidRequestError(
                    f"container {session.container_id} already backs session {owner}"
                )
            self._sessions[session.session_id] = session
            self._by_container[session.container_id] = session.session_id

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def find_by_container(self, container_id: str) -> Session | None:
        with self._lock:
            session_id = self._by_container.get(container_id)
            if session_id is None:
                return None
            return self._sessions.get(session_id)

    def snapshot(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def update_status(self, session_id: str, status: SessionStatus) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            updated = session.with_status(status)
            self._sessions[session_id] = updated
            return updated

    def remove(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is not None:
                self._by_container.pop(session.container_id, None)
            return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["InMemorySessionRegistry"]
