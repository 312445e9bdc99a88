# Overview: Domain error taxonomy; each error knows its client-facing kind and HTTP status.

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for errors raised by the service layer.

    Routes never translate these by hand: the app-level error handler
    renders `kind` into the response envelope with `http_status`.
    """
    kind = "downstream"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Referenced entity does not exist or is soft-deleted."""
    kind = "not-found"
    http_status = 404


class ConflictError(DomainError):
    """409-level uniqueness collision (e.g., duplicate phone or plate)."""
    kind = "conflict"
    http_status = 409


class IntegrityViolation(DomainError):
    """Operation would leave a referential invariant broken."""
    kind = "integrity"
    http_status = 409


class ValidationError(DomainError):
    """400-level input problem."""
    kind = "invalid-input"
    http_status = 400


class InvalidStateError(DomainError):
    kind = "invalid-state"
    http_status = 400


class InvalidTransitionError(InvalidStateError):
    """Requested status is not reachable from the current status."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"invalid-transition: cannot move from {current} to {target}",
            {"from": current, "to": target},
        )


class InsufficientStockError(DomainError):
    kind = "insufficient-stock"
    http_status = 409


class DownstreamError(DomainError):
    """Storage or network failure, including an expired request deadline."""
    kind = "downstream"
    http_status = 500
