from __future__ import annotations

import pytest

from cube_sessions.application.dto.session import CreateSessionRequest
from cube_sessions.infrastructure.docker.engine import DockerContainerEngine
from cube_sessions.runtime.bootstrap import build_engine, build_runtime, shutdown_runtime
from cube_sessions.runtime.settings import Settings
from tests.fixtures.fakes import FakeContainerEngine, make_allocator


def test_build_engine_uses_docker_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUBE_DOCKER_BINARY", "/usr/local/bin/docker")

    assert isinstance(build_engine(Settings()), DockerContainerEngine)


def test_runtime_wires_a_working_service(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUBE_ACCESS_HOST", "sessions.example")
    monkeypatch.setenv("CUBE_MAX_PORTS_PER_SESSION", "2")
    runtime = build_runtime(Settings(), engine=FakeContainerEngine(), allocator=make_allocator())

    session = runtime.service.create_session(CreateSessionRequest(image_name="nginx", num_ports=2))

    assert session.ports[0].url == f"http://sessions.example:{session.ports[0].host_port}"
    assert runtime.session_route_deps_provider().service is runtime.service
    assert runtime.registry.get(session.session_id) == session


def test_shutdown_runtime_deletes_all_sessions() -> None:
    engine = FakeContainerEngine()
    runtime = build_runtime(Settings(), engine=engine, allocator=make_allocator())
    for _ in range(2):
        runtime.service.create_session(CreateSessionRequest(image_name="nginx"))
    engine.fail_stop.update(engine.containers)

    shutdown_runtime(runtime)

    assert len(runtime.registry) == 0
    assert runtime.allocator.leased() == frozenset()
    assert engine.containers == {}
