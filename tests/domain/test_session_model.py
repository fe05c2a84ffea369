from __future__ import annotations

import pytest

from cube_sessions.domain.container import ContainerSummary, ImageInfo
from cube_sessions.domain.session import (
    PortBinding,
    PortRequest,
    Protocol,
    Session,
    SessionStatus,
)
from tests.fixtures.fakes import FIXED_NOW


def _session(**overrides: object) -> Session:
    values: dict[str, object] = {
        "session_id": "session-1",
        "created_at": FIXED_NOW,
        "image_name": "nginx",
        "container_id": "container-1",
        "ports": (
            PortBinding(host_port=41000, container_port=80),
            PortBinding(host_port=41001, container_port=443),
        ),
    }
    values.update(overrides)
    return Session(**values)  # type: ignore[arg-type]


def test_protocol_parse_defaults_to_tcp() -> None:
    assert Protocol.parse(None) is Protocol.TCP
    assert Protocol.parse("") is Protocol.TCP
    assert Protocol.parse(" UDP ") is Protocol.UDP


def test_protocol_parse_rejects_unknown_values() -> None:
    with pytest.raises(ValueError, match="unsupported protocol"):
        Protocol.parse("sctp")


@pytest.mark.parametrize("port", [0, 65536, -1])
def test_port_request_rejects_out_of_range_ports(port: int) -> None:
    with pytest.raises(ValueError):
        PortRequest(container_port=port)


def test_session_exposes_host_ports_and_status_copies() -> None:
    session = _session()

    stopped = session.with_status(SessionStatus.STOPPED)

    assert session.host_ports == (41000, 41001)
    assert session.status is SessionStatus.RUNNING
    assert stopped.status is SessionStatus.STOPPED
    assert stopped.session_id == session.session_id
    assert session.with_status(SessionStatus.RUNNING) is session


def test_session_requires_identifiers() -> None:
    with pytest.raises(ValueError):
        _session(session_id="")
    with pytest.raises(ValueError):
        _session(container_id="")


def test_image_matches_repository_or_reference() -> None:
    image = ImageInfo(image_id="sha256:1", repository="postgres", tag="16")

    assert image.reference == "postgres:16"
    assert image.matches("postgres")
    assert image.matches("postgres:16")
    assert not image.matches("postgres:15")


def test_container_summary_name_strips_leading_slash() -> None:
    assert ContainerSummary(container_id="abc", names=("/web",)).name == "web"
    assert ContainerSummary(container_id="abc").name == ""
