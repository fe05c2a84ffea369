"""Port describing host port leasing."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class PortAllocatorPort(Protocol):
    """Leases host ports exclusively to one live session at a time."""

    def lease(self) -> int:
        """Return a free port; ``ResourceExhaustedError`` when none is available."""

    def release(self, port: int) -> None:
        """Return ``port``; releasing an unleased port is a no-op."""

    def release_all(self, ports: Iterable[int]) -> None:
        """Release every port in ``ports``."""


__all__ = ["PortAllocatorPort"]
