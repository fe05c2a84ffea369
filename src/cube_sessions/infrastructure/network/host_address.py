"""Discovery of the address clients use to reach published ports."""

from __future__ import annotations

import ipaddress
import logging
import socket

import psutil

logger = logging.getLogger("cube_sessions.network")

FALLBACK_HOST = "localhost"


def first_non_loopback_ipv4() -> str | None:
    """Return the first IPv4 interface address that is not loopback."""
    try:
        interfaces = psutil.net_if_addrs()
    except OSError as exc:
        logger.warning("interface enumeration failed: %s", exc)
        return None

    for addresses in interfaces.values():
        for address in addresses:
            if address.family != socket.AF_INET:
                continue
            try:
                parsed = ipaddress.IPv4Address(address.address)
            except ValueError:
                continue
            if not parsed.is_loopback:
                return str(parsed)
    return None


def resolve_access_host(override: str | None = None) -> str:
    """Return the configured access host, the discovered address, or localhost."""
    if override:
        return override
    return first_non_loopback_ipv4() or FALLBACK_HOST


__all__ = ["FALLBACK_HOST", "first_non_loopback_ipv4", "resolve_access_host"]
