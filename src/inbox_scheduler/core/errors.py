"""Exception hierarchy for the scheduler and its collaborators."""

from __future__ import annotations


class ExternalServiceError(RuntimeError):
    """Raised when a call to the mail provider reports failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthorizationError(ExternalServiceError):
    """Raised when the provider rejects the presented access token."""


class TokenValidationError(RuntimeError):
    """Raised when no usable access token can be obtained for an action."""


class CleanupError(RuntimeError):
    """Raised when discarding a cancelled action's draft fails."""


class SchedulingError(ValueError):
    """Raised for schedule requests the scheduler refuses to accept."""


class InvalidTransitionError(RuntimeError):
    """Raised when an action is asked to leave a terminal state."""


__all__ = [
    "AuthorizationError",
    "CleanupError",
    "ExternalServiceError",
    "InvalidTransitionError",
    "SchedulingError",
    "TokenValidationError",
]
