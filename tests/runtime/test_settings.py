from __future__ import annotations

import pytest
from pydantic import ValidationError

from cube_sessions.runtime.settings import Settings


def test_settings_defaults() -> None:
    settings = Settings.load()

    assert settings.listen_host == "0.0.0.0"
    assert settings.listen_port == 8080
    assert settings.cors_origins == ("http://localhost:3000", "http://127.0.0.1:3000")
    assert settings.docker.docker_binary == "docker"
    assert settings.docker.pull_policy == "missing"
    assert settings.docker.stop_timeout_seconds == 10
    assert settings.ports.lease_attempts == 64
    assert settings.ports.max_ports_per_session == 32
    assert settings.ports.access_host is None
    assert settings.observability.enable_cloud_logging is False


def test_settings_loads_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUBE_PORT", "9090")
    monkeypatch.setenv("CUBE_CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("CUBE_DOCKER_PULL_POLICY", "always")
    monkeypatch.setenv("CUBE_MAX_PORTS_PER_SESSION", "4")
    monkeypatch.setenv("CUBE_ACCESS_HOST", "sessions.example")

    settings = Settings.load()

    assert settings.listen_port == 9090
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.docker.pull_policy == "always"
    assert settings.ports.max_ports_per_session == 4
    assert settings.ports.access_host == "sessions.example"


def test_settings_reject_unknown_pull_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CUBE_DOCKER_PULL_POLICY", "sometimes")

    with pytest.raises(ValidationError):
        Settings.load()
