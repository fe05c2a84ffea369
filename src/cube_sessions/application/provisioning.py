"""Rollback-safe provisioning of container sessions."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from cube_sessions.application.dto.session import CreateSessionRequest
from cube_sessions.application.ports.container_engine import ContainerEnginePort
from cube_sessions.application.ports.port_allocator import PortAllocatorPort
from cube_sessions.application.ports.session_registry import SessionRegistryPort
from cube_sessions.domain.port_plan import PortPlan, access_url, derive_port_plan, describe_port
from cube_sessions.domain.session import PortBinding, PortRequest, Protocol, Session, SessionStatus
from cube_sessions.errors import InvalidRequestError, UpstreamError

logger = logging.getLogger("cube_sessions.provisioning")

DEFAULT_MAX_PORTS_PER_SESSION = 32


def _new_session_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ProvisioningWorkflow:
    """Turns a creation request into a registered session.

    Host ports and the container are acquired before the session is recorded.
    Any failure along the way releases every port leased by that attempt, and
    a container created for a session that cannot be recorded is removed, so
    a failed run leaves no leaked port and no orphaned container behind.
    """

    def __init__(
        self,
        *,
        engine: ContainerEnginePort,
        allocator: PortAllocatorPort,
        registry: SessionRegistryPort,
        access_host: Callable[[], str],
        max_ports_per_session: int = DEFAULT_MAX_PORTS_PER_SESSION,
        id_factory: Callable[[], str] = _new_session_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._engine = engine
        self._allocator = allocator
        self._registry = registry
        self._access_host = access_host
        self._max_ports = max_ports_per_session
        self._new_id = id_factory
        self._clock = clock

    def provision(self, request: CreateSessionRequest) -> Session:
        image_name = self._validate(request)
        tracer = trace.get_tracer("cube_sessions.provisioning")
        with tracer.start_as_current_span(
            "cube.session.provision",
            attributes={"cube.image": image_name},
        ) as span:
            start = time.perf_counter()
            try:
                session = self._provision(image_name, request)
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                raise
            span.set_attribute("cube.session_id", session.session_id)
            span.set_attribute("cube.port_count", len(session.ports))
            logger.info(
                "created session %s for image %s",
                session.session_id,
                image_name,
                extra={
                    "data": {
                        "session_id": session.session_id,
                        "container": session.container_id,
                        "host_ports": list(session.host_ports),
                        "elapsed_ms": round((time.perf_counter() - start) * 1000, 2),
                    }
                },
            )
            return session

    def _validate(self, request: CreateSessionRequest) -> str:
        image_name = (request.image_name or "").strip()
        if not image_name:
            raise InvalidRequestError("image_name is required")
        if request.num_ports < 0:
            raise InvalidRequestError("num_ports must be non-negative")
        requested = len(request.port_mappings) or request.num_ports
        if requested > self._max_ports:
            raise InvalidRequestError(
                f"at most {self._max_ports} ports may be published per session"
            )
        return image_name

    def _provision(self, image_name: str, request: CreateSessionRequest) -> Session:
        plan = self._resolve_plan(image_name, request)
        host_ports = self._lease_ports(len(plan.ports))
        bindings = tuple(
            PortBinding(
                host_port=host_port,
                container_port=port.container_port,
                protocol=port.protocol,
                description=port.description,
            )
            for host_port, port in zip(host_ports, plan.ports, strict=True)
        )

        for index, binding in enumerate(bindings, start=1):
            logger.debug(
                "port %d: %d -> %d/%s",
                index,
                binding.host_port,
                binding.container_port,
                binding.protocol.value,
            )

        try:
            container_id = self._engine.create_and_start(image_name, bindings)
        except Exception as exc:
            logger.error(
                "failed to create container for image %s; releasing %d ports",
                image_name,
                len(host_ports),
                extra={"data": {"host_ports": host_ports, "error": str(exc)}},
            )
            self._allocator.release_all(host_ports)
            if isinstance(exc, UpstreamError):
                raise
            raise UpstreamError(f"failed to create container: {exc}") from exc

        try:
            session = Session(
                session_id=self._new_id(),
                created_at=self._clock(),
                image_name=image_name,
                container_id=container_id,
                ports=self._with_access_urls(bindings),
                status=SessionStatus.RUNNING,
            )
            self._registry.insert(session)
        except Exception:
            logger.exception(
                "failed to record session for container %s; rolling back",
                container_id,
                extra={"data": {"host_ports": host_ports}},
            )
            self._discard_container(container_id)
            self._allocator.release_all(host_ports)
            raise
        return session

    def _resolve_plan(self, image_name: str, request: CreateSessionRequest) -> PortPlan:
        mappings = self._requested_ports(request)
        try:
            plan = derive_port_plan(
                image_name=image_name,
                mappings=mappings,
                num_ports=request.num_ports,
                list_images=self._engine.list_images,
            )
        except UpstreamError as exc:
            logger.error("failed to list images while planning ports: %s", exc)
            raise UpstreamError(f"failed to list images: {exc.message}") from exc

        logger.info(
            "resolved port plan for image %s",
            image_name,
            extra={
                "data": {
                    "source": plan.source.value,
                    "container_ports": [port.container_port for port in plan.ports],
                }
            },
        )
        return plan

    @staticmethod
    def _requested_ports(request: CreateSessionRequest) -> tuple[PortRequest, ...]:
        ports: list[PortRequest] = []
        for mapping in request.port_mappings:
            try:
                ports.append(
                    PortRequest(
                        container_port=mapping.container_port,
                        protocol=Protocol.parse(mapping.protocol),
                        description=mapping.description or describe_port(mapping.container_port),
                    )
                )
            except ValueError as exc:
                raise InvalidRequestError(str(exc)) from exc
        return tuple(ports)

    def _lease_ports(self, count: int) -> list[int]:
        leased: list[int] = []
        try:
            for _ in range(count):
                leased.append(self._allocator.lease())
        except Exception:
            logger.error(
                "failed to lease host port; releasing %d already leased",
                len(leased),
                extra={"data": {"requested": count, "leased": leased}},
            )
            self._allocator.release_all(leased)
            raise
        return leased

    def _with_access_urls(self, bindings: tuple[PortBinding, ...]) -> tuple[PortBinding, ...]:
        host = self._access_host()
        return tuple(
            PortBinding(
                host_port=binding.host_port,
                container_port=binding.container_port,
                protocol=binding.protocol,
                description=binding.description,
                url=access_url(
                    host=host,
                    host_port=binding.host_port,
                    container_port=binding.container_port,
                    protocol=binding.protocol,
                ),
            )
            for binding in bindings
        )

    def _discard_container(self, container_id: str) -> None:
        try:
            self._engine.remove(container_id, force=True)
        except UpstreamError as exc:
            logger.warning(
                "docker rm failed during rollback (ignored): %s",
                exc,
                extra={"data": {"container": container_id}},
            )


__all__ = ["DEFAULT_MAX_PORTS_PER_SESSION", "ProvisioningWorkflow"]
