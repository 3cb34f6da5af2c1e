"""Failures surfaced by the session coordinators.

Malformed stream frames have no exception type: the decoder drops them and
keeps going. Everything else is reported to the caller, which decides whether
to try again; nothing in the core retries on its own.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "AppCoderError",
    "PreconditionFailed",
    "PublishFailure",
    "TransportFailure",
]


class AppCoderError(RuntimeError):
    """Base class for errors raised by the generation and publish coordinators."""


class PreconditionFailed(AppCoderError):
    """Raised when an operation is not legal in the session's current state."""

    def __init__(self, operation: str, status: str, reason: Optional[str] = None) -> None:
        self.operation = operation
        self.status = status
        self.reason = reason
        message = f"{operation} not allowed while session is {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class TransportFailure(AppCoderError):
    """The completion service answered non-2xx or the stream broke off."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PublishFailure(AppCoderError):
    """The publish backend rejected or failed a publish attempt."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
