"""Host port leasing backed by OS-assigned ephemeral ports."""

from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Callable, Iterable
from typing import TypedDict

from cube_sessions.application.ports.port_allocator import PortAllocatorPort
from cube_sessions.errors import ResourceExhaustedError

logger = logging.getLogger("cube_sessions.ports")

DEFAULT_MAX_ATTEMPTS = 64


class PortUsageStats(TypedDict):
    leased_count: int
    leased_ports: list[int]


def os_assigned_port(bind_host: str = "0.0.0.0") -> int:  # noqa: S104
    """Bind to port 0, read the port the kernel picked, and close the socket."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((bind_host, 0))
        return int(sock.getsockname()[1])


class PortAllocator(PortAllocatorPort):
    """Leases host ports so no two live sessions ever share one.

    Ports come from the OS, so they are free at the time of the lease. The
    leased set is guarded by the allocator's own lock, independent of the
    session registry, so rollback paths can release ports without waiting on
    registry mutations.
    """

    def __init__(
        self,
        *,
        bind_host: str = "0.0.0.0",  # noqa: S104
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        port_finder: Callable[[], int] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        self._max_attempts = max_attempts
        self._find_port = port_finder or (lambda: os_assigned_port(bind_host))
        self._leased: set[int] = set()
        self._lock = threading.Lock()

    def lease(self) -> int:
        """Return a port that no other live lease holds."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                port = self._find_port()
            except OSError as exc:
                logger.error(
                    "os refused ephemeral port",
                    extra={"data": {"attempt": attempt, "error": str(exc)}},
                )
                raise ResourceExhaustedError("no ports available") from exc
            with self._lock:
                if port not in self._leased:
                    self._leased.add(port)
                    logger.debug("leased port %s", port)
                    return port
            # the OS handed back a port that is still leased to a live session
            logger.debug("port %s already leased, retrying (attempt=%s)", port, attempt)
        raise ResourceExhaustedError(
            f"no ports available after {self._max_attempts} attempts"
        )

    def release(self, port: int) -> None:
        """Return ``port`` to the pool; releasing an unleased port is a no-op."""
        with self._lock:
            if port not in self._leased:
                logger.debug("release of unleased port %s ignored", port)
                return
            self._leased.discard(port)
        logger.debug("released port %s", port)

    def release_all(self, ports: Iterable[int]) -> None:
        for port in ports:
            self.release(port)

    def is_leased(self, port: int) -> bool:
        with self._lock:
            return port in self._leased

    def leased(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._leased)

    def stats(self) -> PortUsageStats:
        with self._lock:
            ports = sorted(self._leased)
        return {"leased_count": len(ports), "leased_ports": ports}


__all__ = ["DEFAULT_MAX_ATTEMPTS", "PortAllocator", "PortUsageStats", "os_assigned_port"]
