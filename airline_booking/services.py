"""Caller-facing booking operations.

Each function opens one unit of work, runs a single engine operation inside
it and commits. Failures are rolled back in full and handed back as an
:class:`OperationResult` carrying the typed error; nothing is retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import catalog
from .accounts import Permission, UserRole, authorize, authorize_reservation
from .cascade import CascadeResult, FlightStatusChange, StatusCascadePolicy
from .database import session_scope
from .deletion import CascadingDeletionCoordinator, DeletionSummary
from .errors import BookingError, IntegrityError, PermissionDeniedError
from .models import AircraftStatus, FlightStatus, Reservation, ReservationStatus, User
from .pricing import Number
from .reservations import ReservationLifecycle

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    success: bool
    value: Optional[T] = None
    error: Optional[BookingError] = None

    @classmethod
    def ok(cls, value: T) -> "OperationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: BookingError) -> "OperationResult[T]":
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Return the value or raise the stored error."""

        if self.success:
            return self.value  # type: ignore[return-value]
        if self.error is None:
            raise BookingError("operation failed without an error")
        raise self.error


@dataclass(frozen=True)
class ReservationView:
    """Detached snapshot of a reservation, safe to use after the session closes."""

    id: int
    status: ReservationStatus
    total_price: Decimal
    customer_id: int
    flight_id: int
    payment_id: Optional[int]
    booked_at: datetime
    seat_ids: List[int] = field(default_factory=list)
    seat_numbers: List[str] = field(default_factory=list)
    ticket_numbers: List[str] = field(default_factory=list)

    @classmethod
    def from_model(cls, reservation: Reservation) -> "ReservationView":
        tickets = list(reservation.tickets)
        return cls(
            id=reservation.id,
            status=reservation.status,
            total_price=reservation.total_price,
            customer_id=reservation.customer_id,
            flight_id=reservation.flight_id,
            payment_id=reservation.payment_id,
            booked_at=reservation.booked_at,
            seat_ids=[ticket.seat_id for ticket in tickets],
            seat_numbers=[ticket.seat.seat_number for ticket in tickets],
            ticket_numbers=[ticket.ticket_number for ticket in tickets],
        )


def _run(
    session_factory: sessionmaker[Session], operation: str, work: Callable[[Session], T]
) -> OperationResult[T]:
    try:
        with session_scope(session_factory) as session:
            value = work(session)
    except BookingError as exc:
        logger.warning("%s rejected: %s", operation, exc)
        return OperationResult.failed(exc)
    except SQLAlchemyError as exc:
        logger.exception("%s rolled back", operation)
        error = IntegrityError(f"{operation} failed and was rolled back: {exc}")
        error.__cause__ = exc
        return OperationResult.failed(error)
    return OperationResult.ok(value)


def book_seats(
    session_factory: sessionmaker[Session],
    *,
    customer_id: int,
    flight_id: int,
    seat_ids: Sequence[int],
    payment_id: Optional[int] = None,
    discount_percent: Number = 0,
    actor: Optional[User] = None,
) -> OperationResult[ReservationView]:
    def work(session: Session) -> ReservationView:
        if actor is not None and actor.role is UserRole.CUSTOMER and actor.id != customer_id:
            raise PermissionDeniedError("customers can only book for themselves")
        reservation = ReservationLifecycle(session).create(
            customer_id,
            flight_id,
            seat_ids,
            payment_id=payment_id,
            discount_percent=discount_percent,
        )
        return ReservationView.from_model(reservation)

    return _run(session_factory, "book_seats", work)


def confirm_reservation(
    session_factory: sessionmaker[Session],
    *,
    reservation_id: int,
    payment_id: int,
    actor: Optional[User] = None,
) -> OperationResult[ReservationView]:
    def work(session: Session) -> ReservationView:
        lifecycle = ReservationLifecycle(session)
        authorize_reservation(actor, lifecycle.get(reservation_id))
        return ReservationView.from_model(lifecycle.confirm(reservation_id, payment_id))

    return _run(session_factory, "confirm_reservation", work)


def cancel_reservation(
    session_factory: sessionmaker[Session],
    *,
    reservation_id: int,
    actor: Optional[User] = None,
) -> OperationResult[ReservationView]:
    def work(session: Session) -> ReservationView:
        lifecycle = ReservationLifecycle(session)
        authorize_reservation(actor, lifecycle.get(reservation_id))
        return ReservationView.from_model(lifecycle.cancel(reservation_id))

    return _run(session_factory, "cancel_reservation", work)


def modify_reservation(
    session_factory: sessionmaker[Session],
    *,
    reservation_id: int,
    seat_ids: Sequence[int],
    actor: Optional[User] = None,
) -> OperationResult[ReservationView]:
    def work(session: Session) -> ReservationView:
        lifecycle = ReservationLifecycle(session)
        authorize_reservation(actor, lifecycle.get(reservation_id))
        return ReservationView.from_model(lifecycle.modify(reservation_id, seat_ids))

    return _run(session_factory, "modify_reservation", work)


def complete_reservation(
    session_factory: sessionmaker[Session],
    *,
    reservation_id: int,
    actor: Optional[User] = None,
) -> OperationResult[ReservationView]:
    def work(session: Session) -> ReservationView:
        if actor is not None and actor.role is UserRole.CUSTOMER:
            raise PermissionDeniedError("customers cannot complete reservations")
        return ReservationView.from_model(ReservationLifecycle(session).complete(reservation_id))

    return _run(session_factory, "complete_reservation", work)


def update_aircraft_status(
    session_factory: sessionmaker[Session],
    *,
    aircraft_id: int,
    status: AircraftStatus,
    now: Optional[datetime] = None,
    actor: Optional[User] = None,
) -> OperationResult[CascadeResult]:
    def work(session: Session) -> CascadeResult:
        authorize(actor, Permission.MANAGE_AIRCRAFT)
        return StatusCascadePolicy(session).update_aircraft_status(aircraft_id, status, now=now)

    return _run(session_factory, "update_aircraft_status", work)


def delete_flight(
    session_factory: sessionmaker[Session],
    *,
    flight_id: int,
    actor: Optional[User] = None,
) -> OperationResult[DeletionSummary]:
    def work(session: Session) -> DeletionSummary:
        authorize(actor, Permission.MANAGE_FLIGHTS)
        return CascadingDeletionCoordinator(session).delete_flight(flight_id)

    return _run(session_factory, "delete_flight", work)


def delete_aircraft(
    session_factory: sessionmaker[Session],
    *,
    aircraft_id: int,
    actor: Optional[User] = None,
) -> OperationResult[DeletionSummary]:
    def work(session: Session) -> DeletionSummary:
        authorize(actor, Permission.MANAGE_AIRCRAFT)
        return CascadingDeletionCoordinator(session).delete_aircraft(aircraft_id)

    return _run(session_factory, "delete_aircraft", work)


def delete_route(
    session_factory: sessionmaker[Session],
    *,
    route_id: int,
    actor: Optional[User] = None,
) -> OperationResult[DeletionSummary]:
    def work(session: Session) -> DeletionSummary:
        authorize(actor, Permission.MANAGE_ROUTES)
        return CascadingDeletionCoordinator(session).delete_route(route_id)

    return _run(session_factory, "delete_route", work)


def update_flight_status(
    session_factory: sessionmaker[Session],
    *,
    flight_id: int,
    status: FlightStatus,
    actor: Optional[User] = None,
) -> OperationResult[FlightStatusChange]:
    def work(session: Session) -> FlightStatusChange:
        authorize(actor, Permission.MANAGE_FLIGHTS)
        return catalog.update_flight_status(session, flight_id, status)

    return _run(session_factory, "update_flight_status", work)


def cancel_flight(
    session_factory: sessionmaker[Session],
    *,
    flight_id: int,
    actor: Optional[User] = None,
) -> OperationResult[FlightStatusChange]:
    def work(session: Session) -> FlightStatusChange:
        authorize(actor, Permission.MANAGE_FLIGHTS)
        return catalog.cancel_flight(session, flight_id)

    return _run(session_factory, "cancel_flight", work)
