"""Tagged error kinds raised by the session orchestration core."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Categories callers branch on instead of matching error strings."""

    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UPSTREAM = "upstream"
    UNKNOWN = "unknown"


class SessionError(Exception):
    """Base class for session orchestration failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(SessionError):
    """Raised when a caller supplies a malformed or incomplete request."""

    kind = ErrorKind.INVALID_REQUEST


class NotFoundError(SessionError):
    """Raised when a session or container is not known."""

    kind = ErrorKind.NOT_FOUND


class ResourceExhaustedError(SessionError):
    """Raised when no host port can be leased."""

    kind = ErrorKind.RESOURCE_EXHAUSTED


class UpstreamError(SessionError):
    """Raised when a container engine call fails."""

    kind = ErrorKind.UPSTREAM


class UnknownStateError(SessionError):
    """Raised when the engine returns an ambiguous answer."""

    kind = ErrorKind.UNKNOWN


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the kind of the first tagged error in the cause chain."""

    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, SessionError):
            return current.kind
        current = current.__cause__
    return ErrorKind.UNKNOWN


__all__ = [
    "ErrorKind",
    "InvalidRequestError",
    "NotFoundError",
    "ResourceExhaustedError",
    "SessionError",
    "UnknownStateError",
    "UpstreamError",
    "error_kind",
]
