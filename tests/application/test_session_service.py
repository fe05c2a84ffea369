from __future__ import annotations

import pytest

from cube_sessions.application.dto.session import CreateSessionRequest
from cube_sessions.domain.container import ImageInfo
from cube_sessions.domain.session import SessionStatus
from cube_sessions.errors import NotFoundError, UpstreamError
from tests.fixtures.fakes import FIXED_NOW, FakeContainerEngine, build_harness


def test_get_session_unknown_raises_not_found(harness) -> None:
    with pytest.raises(NotFoundError, match="session nope not found"):
        harness.service.get_session("nope")


def test_inspect_running_session(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))

    details = harness.service.inspect_session(session.session_id)

    assert details.session.status is SessionStatus.RUNNING
    assert details.container is not None
    assert details.container.running is True
    assert details.container.started_at == FIXED_NOW


def test_inspect_refreshes_status_of_stopped_container(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.stop(session.container_id)

    details = harness.service.inspect_session(session.session_id)

    assert details.session.status is SessionStatus.STOPPED
    assert harness.registry.get(session.session_id).status is SessionStatus.STOPPED


def test_inspect_marks_missing_container_as_error(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.vanish(session.container_id)

    details = harness.service.inspect_session(session.session_id)

    assert details.container is None
    assert details.session.status is SessionStatus.ERROR


def test_list_images_wraps_engine_failures() -> None:
    harness = build_harness(FakeContainerEngine(fail_list_images=True))

    with pytest.raises(UpstreamError, match="failed to list images"):
        harness.service.list_images()


def test_list_images_returns_engine_images() -> None:
    image = ImageInfo(image_id="sha256:1", repository="nginx", tag="latest", exposed_ports=(80,))
    harness = build_harness(FakeContainerEngine(images=[image]))

    assert harness.service.list_images() == [image]


def test_list_containers_marks_session_owned_containers(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.adopt("stray")

    views = {view.container.container_id: view for view in harness.service.list_containers()}

    assert views[session.container_id].session_id == session.session_id
    assert views[session.container_id].is_managed
    assert views["stray"].session_id is None
    assert not views["stray"].is_managed
