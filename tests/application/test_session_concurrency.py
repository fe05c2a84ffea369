from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Iterable

from cube_sessions.application.dto.session import CreateSessionRequest
from cube_sessions.domain.session import Session
from cube_sessions.infrastructure.network.port_allocator import PortAllocator
from tests.fixtures.fakes import build_harness


class CyclingPortFinder:
    """Hands out ports from a small pool, so live leases are offered again."""

    def __init__(self, ports: Iterable[int]) -> None:
        self._ports = itertools.cycle(list(ports))
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return next(self._ports)


def _host_ports(sessions: Iterable[Session]) -> list[int]:
    return [port for session in sessions for port in session.host_ports]


def _run_concurrently(workers: list[Callable[[], None]]) -> list[BaseException]:
    barrier = threading.Barrier(len(workers))
    failures: list[BaseException] = []

    def run(worker: Callable[[], None]) -> None:
        barrier.wait()
        try:
            worker()
        except BaseException as exc:  # noqa: BLE001
            failures.append(exc)

    threads = [threading.Thread(target=run, args=(worker,)) for worker in workers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)
    return failures


def test_concurrent_create_list_and_bulk_delete_keep_ports_consistent() -> None:
    allocator = PortAllocator(max_attempts=2000, port_finder=CyclingPortFinder(range(41000, 41256)))
    harness = build_harness(allocator=allocator)
    service = harness.service
    listed: list[list[Session]] = []

    def creator(offset: int) -> Callable[[], None]:
        def create() -> None:
            for index in range(6):
                num_ports = 1 + (offset + index) % 3
                service.create_session(CreateSessionRequest(image_name="nginx", num_ports=num_ports))

        return create

    def lister() -> None:
        for _ in range(10):
            listed.append(service.list_sessions())

    def bulk_deleter() -> None:
        for _ in range(3):
            service.delete_all_sessions()

    failures = _run_concurrently(
        [creator(offset) for offset in range(6)] + [lister, lister, bulk_deleter, bulk_deleter]
    )

    assert failures == []
    sessions = harness.registry.snapshot()
    ports = _host_ports(sessions)
    assert len(ports) == len(set(ports))
    assert allocator.leased() == frozenset(ports)
    assert set(harness.engine.containers) == {session.container_id for session in sessions}
    for snapshot in listed:
        snapshot_ports = _host_ports(snapshot)
        assert len(snapshot_ports) == len(set(snapshot_ports))


def test_concurrent_creates_lease_distinct_ports() -> None:
    allocator = PortAllocator(max_attempts=2000, port_finder=CyclingPortFinder(range(42000, 42064)))
    harness = build_harness(allocator=allocator)

    def create() -> None:
        for _ in range(4):
            harness.service.create_session(CreateSessionRequest(image_name="nginx", num_ports=2))

    failures = _run_concurrently([create] * 6)

    assert failures == []
    sessions = harness.registry.snapshot()
    ports = _host_ports(sessions)
    assert len(sessions) == 24
    assert len(set(session.session_id for session in sessions)) == 24
    assert len(ports) == len(set(ports)) == 48
    assert allocator.leased() == frozenset(ports)

    result = harness.service.delete_all_sessions()

    assert result.count == 24
    assert allocator.leased() == frozenset()
