"""Runtime wiring for the session service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from cube_sessions.application.deletion import SessionDeleter
from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.application.provisioning import ProvisioningWorkflow
from cube_sessions.application.reconciler import Reconciler
from cube_sessions.application.session_service import SessionService
from cube_sessions.infrastructure.docker.engine import DockerContainerEngine
from cube_sessions.infrastructure.http.routes import SessionRouteDeps
from cube_sessions.infrastructure.network.host_address import resolve_access_host
from cube_sessions.infrastructure.network.port_allocator import PortAllocator
from cube_sessions.infrastructure.state.session_registry import InMemorySessionRegistry
from cube_sessions.runtime.settings import Settings

logger = logging.getLogger("cube_sessions.runtime")


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Aggregated runtime components for the session service."""

    settings: Settings
    engine: ContainerEnginePort
    allocator: PortAllocator
    registry: InMemorySessionRegistry
    service: SessionService
    session_route_deps_provider: Callable[[], SessionRouteDeps]


def build_engine(settings: Settings) -> DockerContainerEngine:
    docker = settings.docker
    return DockerContainerEngine(
        docker_binary=docker.docker_binary,
        publish_host=docker.publish_host,
        pull_policy=docker.pull_policy,
        stop_timeout_seconds=docker.stop_timeout_seconds,
        command_timeout_seconds=docker.command_timeout_seconds,
    )


def build_runtime(
    settings: Settings,
    *,
    engine: ContainerEnginePort | None = None,
    allocator: PortAllocator | None = None,
) -> RuntimeContext:
    """Wire the service graph; ``engine`` and ``allocator`` may be swapped in tests."""
    engine = engine or build_engine(settings)
    allocator = allocator or PortAllocator(
        bind_host=settings.ports.bind_host,
        max_attempts=settings.ports.lease_attempts,
    )
    registry = InMemorySessionRegistry()
    access_override = settings.ports.access_host

    service = SessionService(
        engine=engine,
        registry=registry,
        provisioning=ProvisioningWorkflow(
            engine=engine,
            allocator=allocator,
            registry=registry,
            access_host=lambda: resolve_access_host(access_override),
            max_ports_per_session=settings.ports.max_ports_per_session,
        ),
        reconciler=Reconciler(engine=engine, allocator=allocator, registry=registry),
        deleter=SessionDeleter(engine=engine, allocator=allocator, registry=registry),
    )
    route_deps = SessionRouteDeps(service=service)

    logger.info(
        "session runtime built",
        extra={
            "data": {
                "docker_binary": settings.docker.docker_binary,
                "pull_policy": settings.docker.pull_policy,
                "max_ports_per_session": settings.ports.max_ports_per_session,
                "access_host_override": access_override,
            }
        },
    )
    return RuntimeContext(
        settings=settings,
        engine=engine,
        allocator=allocator,
        registry=registry,
        service=service,
        session_route_deps_provider=lambda: route_deps,
    )


def shutdown_runtime(runtime: RuntimeContext) -> None:
    """Tear down every tracked session; failures are logged, never raised."""
    if not len(runtime.registry):
        return
    logger.info("cleaning up %d sessions on shutdown", len(runtime.registry))
    try:
        result = runtime.service.delete_all_sessions()
    except Exception:
        logger.exception("failed to clean up sessions on shutdown")
        return
    logger.info(
        "shutdown cleanup finished",
        extra={"data": {"count": result.count, "errors": [str(error) for error in result.errors]}},
    )


__all__ = ["RuntimeContext", "build_engine", "build_runtime", "shutdown_runtime"]
