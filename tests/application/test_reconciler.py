from __future__ import annotations

from cube_sessions.application.dto.session import CreateSessionRequest
from cube_sessions.application.reconciler import Reconciler
from cube_sessions.domain.session import SessionStatus


def test_list_purges_sessions_whose_container_vanished(harness) -> None:
    kept = harness.service.create_session(CreateSessionRequest(image_name="nginx", num_ports=1))
    gone = harness.service.create_session(CreateSessionRequest(image_name="nginx", num_ports=2))
    harness.engine.vanish(gone.container_id)

    sessions = harness.service.list_sessions()

    assert [session.session_id for session in sessions] == [kept.session_id]
    assert harness.registry.get(gone.session_id) is None
    assert harness.allocator.leased() == frozenset(kept.host_ports)


def test_failed_existence_check_keeps_session_as_unknown(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.fail_exists.add(session.container_id)

    sessions = harness.service.list_sessions()

    assert [s.status for s in sessions] == [SessionStatus.UNKNOWN]
    assert harness.registry.get(session.session_id).status is SessionStatus.UNKNOWN
    assert harness.allocator.leased() == frozenset(session.host_ports)


def test_unknown_session_recovers_once_the_engine_answers(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.fail_exists.add(session.container_id)
    harness.service.list_sessions()
    harness.engine.fail_exists.clear()

    sessions = harness.service.list_sessions()

    assert [s.status for s in sessions] == [SessionStatus.RUNNING]


def test_reconcile_report_lists_purged_ids(harness) -> None:
    session = harness.service.create_session(CreateSessionRequest(image_name="nginx"))
    harness.engine.vanish(session.container_id)
    reconciler = Reconciler(
        engine=harness.engine,
        allocator=harness.allocator,
        registry=harness.registry,
    )

    report = reconciler.reconcile()

    assert report.sessions == []
    assert report.purged == [session.session_id]
    assert len(harness.registry) == 0
