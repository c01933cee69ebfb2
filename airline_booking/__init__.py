"""Airline seat booking and inventory consistency engine."""
from typing import Any

from .cascade import StatusCascadePolicy, plan_cascade
from .catalog import (
    add_aircraft,
    add_customer,
    add_flight,
    add_route,
    add_user,
    list_available_flights,
    record_payment,
    search_flights,
    summarize_capacity,
)
from .database import create_session_factory, init_db, session_scope
from .dataset import generate_sample_data
from .deletion import CascadingDeletionCoordinator, DeletionSummary
from .errors import (
    BookingError,
    InsufficientInventoryError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .inventory import SeatInventory, SeatLayout
from .reservations import ReservationLifecycle
from .services import (
    OperationResult,
    book_seats,
    cancel_flight,
    cancel_reservation,
    complete_reservation,
    confirm_reservation,
    delete_aircraft,
    delete_flight,
    delete_route,
    modify_reservation,
    update_aircraft_status,
    update_flight_status,
)


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "BookingError",
    "CascadingDeletionCoordinator",
    "DeletionSummary",
    "InsufficientInventoryError",
    "IntegrityError",
    "InvalidStateError",
    "NotFoundError",
    "OperationResult",
    "PermissionDeniedError",
    "ReservationLifecycle",
    "SeatInventory",
    "SeatLayout",
    "StatusCascadePolicy",
    "ValidationError",
    "add_aircraft",
    "add_customer",
    "add_flight",
    "add_route",
    "add_user",
    "book_seats",
    "cancel_flight",
    "cancel_reservation",
    "complete_reservation",
    "confirm_reservation",
    "create_app",
    "create_session_factory",
    "delete_aircraft",
    "delete_flight",
    "delete_route",
    "generate_sample_data",
    "init_db",
    "list_available_flights",
    "modify_reservation",
    "plan_cascade",
    "record_payment",
    "search_flights",
    "session_scope",
    "summarize_capacity",
    "update_aircraft_status",
    "update_flight_status",
]
