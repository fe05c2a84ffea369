from __future__ import annotations

import threading

import pytest

from cube_sessions.domain.session import PortBinding, Session, SessionStatus
from cube_sessions.errors import InvalidRequestError
from cube_sessions.infrastructure.state.session_registry import InMemorySessionRegistry
from tests.fixtures.fakes import FIXED_NOW


def _session(session_id: str, container_id: str, host_port: int = 41000) -> Session:
    return Session(
        session_id=session_id,
        created_at=FIXED_NOW,
        image_name="nginx",
        container_id=container_id,
        ports=(PortBinding(host_port=host_port, container_port=80),),
    )


def test_insert_get_and_snapshot_in_creation_order() -> None:
    registry = InMemorySessionRegistry()
    registry.insert(_session("b", "container-b"))
    registry.insert(_session("a", "container-a"))

    assert registry.get("a") is not None
    assert registry.get("missing") is None
    assert [session.session_id for session in registry.snapshot()] == ["b", "a"]
    assert len(registry) == 2


def test_insert_rejects_duplicate_ids_and_containers() -> None:
    registry = InMemorySessionRegistry()
    registry.insert(_session("a", "container-a"))

    with pytest.raises(InvalidRequestError):
        registry.insert(_session("a", "container-other"))
    with pytest.raises(InvalidRequestError, match="already backs session a"):
        registry.insert(_session("b", "container-a"))

    assert len(registry) == 1


def test_find_by_container_tracks_removals() -> None:
    registry = InMemorySessionRegistry()
    registry.insert(_session("a", "container-a"))

    found = registry.find_by_container("container-a")
    removed = registry.remove("a")

    assert found is not None and found.session_id == "a"
    assert removed is not None and removed.session_id == "a"
    assert registry.find_by_container("container-a") is None
    assert registry.remove("a") is None


def test_update_status_replaces_the_snapshot() -> None:
    registry = InMemorySessionRegistry()
    original = _session("a", "container-a")
    registry.insert(original)

    updated = registry.update_status("a", SessionStatus.UNKNOWN)

    assert updated is not None and updated.status is SessionStatus.UNKNOWN
    assert original.status is SessionStatus.RUNNING
    assert registry.get("a") == updated
    assert registry.update_status("missing", SessionStatus.ERROR) is None


def test_exclusive_blocks_other_threads_but_is_reentrant() -> None:
    registry = InMemorySessionRegistry()
    inserted = threading.Event()

    def insert_from_other_thread() -> None:
        registry.insert(_session("other", "container-other"))
        inserted.set()

    with registry.exclusive():
        registry.insert(_session("mine", "container-mine"))
        thread = threading.Thread(target=insert_from_other_thread)
        thread.start()
        assert not inserted.wait(timeout=0.2)
        assert len(registry) == 1

    thread.join(timeout=2)
    assert inserted.is_set()
    assert len(registry) == 2
