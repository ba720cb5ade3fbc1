"""
Exception hierarchy for measurement failures.

``CancellationError`` is expected and never shown to the user.
``NetworkError`` and ``MalformedResponseError`` are surfaced with the
name of the phase in which they occurred.
"""
from __future__ import annotations


class SpeedtestError(Exception):
    """Base class for every measurement failure."""


class CancellationError(SpeedtestError):
    """The cancellation token was signaled before or during an operation."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)


class NetworkError(SpeedtestError):
    """Non-success response or transport failure."""

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponseError(NetworkError):
    """The service answered 2xx but the payload had an unexpected shape."""
