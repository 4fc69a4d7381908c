from __future__ import annotations


class BracketError(Exception):
    """Base exception for bracket client failures."""

    retryable = False

    def __init__(self, message: str = "", *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class Unauthorized(BracketError):
    """Raised when the session is missing, expired or rejected by the server."""


class Forbidden(BracketError):
    """Raised when the session role may not perform the operation."""


class NotFound(BracketError):
    """Raised when a tournament, round or match does not exist."""


class PreconditionFailed(BracketError):
    """Raised when an operation is not legal in the current bracket state."""


class Conflict(PreconditionFailed):
    """Raised for out-of-order round creation or superseded rounds."""


class InvalidArgument(PreconditionFailed):
    """Raised for malformed requests and re-declaration of decided matches."""


class TournamentCompleted(PreconditionFailed):
    """Raised when a round-mutating operation targets a finished tournament."""


class NetworkFailure(BracketError):
    """Transport-level failure or transient server error."""

    retryable = True


class StaleTarget(BracketError):
    """Raised when a response arrives for a target the caller has left."""


class InvariantViolation(BracketError):
    """Raised when the server returns state that breaks a bracket invariant."""


__all__ = [
    "BracketError",
    "Conflict",
    "Forbidden",
    "InvalidArgument",
    "InvariantViolation",
    "NetworkFailure",
    "NotFound",
    "PreconditionFailed",
    "StaleTarget",
    "TournamentCompleted",
    "Unauthorized",
]
