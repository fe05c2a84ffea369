from __future__ import annotations

import pytest

from tests.fixtures.fakes import FakeContainerEngine, ServiceHarness, build_harness

_ENV_VARS = (
    "CUBE_ACCESS_HOST",
    "CUBE_CORS_ORIGINS",
    "CUBE_DOCKER_BINARY",
    "CUBE_DOCKER_PULL_POLICY",
    "CUBE_HOST",
    "CUBE_PORT",
    "ENABLE_CLOUD_LOGGING",
    "K_SERVICE",
    "KUBERNETES_SERVICE_HOST",
    "OTEL_EXPORTER_OTLP_ENDPOINT",
    "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
    "OTEL_TRACES_EXPORTER",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    # ambient operator settings must not leak into assertions about defaults
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine() -> FakeContainerEngine:
    return FakeContainerEngine()


@pytest.fixture
def harness(engine: FakeContainerEngine) -> ServiceHarness:
    return build_harness(engine)
