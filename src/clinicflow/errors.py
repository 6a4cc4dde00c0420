"""Typed errors surfaced to callers with a stable machine-readable code."""

from __future__ import annotations

from typing import Any

__all__ = [
    "ClinicFlowError",
    "NotFoundError",
    "RangeTooLargeError",
    "StateConflictError",
    "StoreUnavailableError",
    "ValidationError",
]


class ClinicFlowError(Exception):
    """Base for every error a caller can act on.

    Never retried by this service: the caller has to change the request.
    """

    status_code = 400

    def __init__(self, code: str, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class ValidationError(ClinicFlowError):
    """Malformed or missing input."""

    status_code = 400


class StateConflictError(ClinicFlowError):
    """The request conflicts with the current state of a check-in."""

    status_code = 409


class NotFoundError(ClinicFlowError):
    """Unknown patient or check-in (or check-in no longer in the expected state)."""

    status_code = 404


class RangeTooLargeError(ClinicFlowError):
    """Requested date span exceeds the endpoint policy."""

    status_code = 400

    def __init__(self, max_days: int) -> None:
        super().__init__(
            "DATE_RANGE_TOO_LARGE",
            f"Date range cannot exceed {max_days} days",
            details={"max_days": max_days},
        )
        self.max_days = max_days


class StoreUnavailableError(Exception):
    """A store collaborator timed out or failed; surfaced as an internal error."""
