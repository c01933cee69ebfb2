"""Typed errors raised by the booking engine."""
from __future__ import annotations


class BookingError(RuntimeError):
    """Base class for every failure the engine reports to its callers."""

    code = "booking_error"


class ValidationError(BookingError):
    """Raised when input is missing or malformed. Nothing is persisted."""

    code = "validation_error"


class NotFoundError(BookingError):
    """Raised when a flight, seat, reservation, aircraft or user id is unknown."""

    code = "not_found"

    def __init__(self, entity: str, identifier: object) -> None:
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class InsufficientInventoryError(BookingError):
    """Raised when the requested seats cannot all be claimed."""

    code = "insufficient_inventory"


class InvalidStateError(BookingError):
    """Raised when a reservation or flight transition is not allowed from its current status."""

    code = "invalid_state"


class IntegrityError(BookingError):
    """Raised when a unit of work fails midway and has been rolled back."""

    code = "integrity_error"


class PermissionDeniedError(BookingError):
    code = "permission_denied"
