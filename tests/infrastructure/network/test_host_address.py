from __future__ import annotations

import socket
from types import SimpleNamespace

import pytest

from cube_sessions.infrastructure.network import host_address
from cube_sessions.infrastructure.network.host_address import (
    FALLBACK_HOST,
    first_non_loopback_ipv4,
    resolve_access_host,
)


def _addr(family: int, address: str) -> SimpleNamespace:
    return SimpleNamespace(family=family, address=address)


def test_first_non_loopback_ipv4_skips_loopback_and_ipv6(monkeypatch: pytest.MonkeyPatch) -> None:
    interfaces = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [
            _addr(socket.AF_INET6, "fe80::1"),
            _addr(socket.AF_INET, "192.168.1.20"),
        ],
    }
    monkeypatch.setattr(host_address.psutil, "net_if_addrs", lambda: interfaces)

    assert first_non_loopback_ipv4() == "192.168.1.20"


def test_resolve_access_host_prefers_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        host_address.psutil,
        "net_if_addrs",
        lambda: {"eth0": [_addr(socket.AF_INET, "10.1.2.3")]},
    )

    assert resolve_access_host("sessions.example") == "sessions.example"
    assert resolve_access_host(None) == "10.1.2.3"


def test_resolve_access_host_falls_back_to_localhost(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        host_address.psutil,
        "net_if_addrs",
        lambda: {"lo": [_addr(socket.AF_INET, "127.0.0.1")]},
    )

    assert first_non_loopback_ipv4() is None
    assert resolve_access_host() == FALLBACK_HOST


def test_interface_enumeration_failure_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom() -> dict[str, list[SimpleNamespace]]:
        raise OSError("permission denied")

    monkeypatch.setattr(host_address.psutil, "net_if_addrs", boom)

    assert resolve_access_host() == FALLBACK_HOST
