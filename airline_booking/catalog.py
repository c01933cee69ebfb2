"""Reference data and flight setup: aircraft, routes, users, flights, payments."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from .accounts import MembershipStatus, PermissionSet, UserRole
from .cascade import FlightStatusChange
from .errors import InvalidStateError, ValidationError
from .inventory import SeatInventory, SeatLayout
from .models import (
    Aircraft,
    AircraftStatus,
    Flight,
    FlightStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    Route,
    User,
    utcnow,
)
from .pricing import Number, to_money
from .repositories import UnitOfWork

logger = logging.getLogger(__name__)

SEARCHABLE_STATUSES = (FlightStatus.SCHEDULED, FlightStatus.DELAYED)


def _require(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def add_aircraft(
    session: Session,
    *,
    model: str,
    manufacturer: str,
    total_seats: int,
    seat_configuration: str = "3-3",
    first_rows: int = 0,
    business_rows: int = 0,
    status: AircraftStatus = AircraftStatus.ACTIVE,
) -> Aircraft:
    """Create an aircraft after checking its seat layout can be generated."""

    SeatLayout(total_seats, seat_configuration, first_rows, business_rows).validate()
    aircraft = Aircraft(
        model=_require(model, "aircraft model"),
        manufacturer=_require(manufacturer, "aircraft manufacturer"),
        total_seats=total_seats,
        seat_configuration=seat_configuration,
        first_rows=first_rows,
        business_rows=business_rows,
        status=AircraftStatus(status),
    )
    return UnitOfWork(session).aircraft.save(aircraft)


def add_route(
    session: Session,
    *,
    origin: str,
    destination: str,
    distance_km: Optional[float] = None,
    estimated_minutes: Optional[int] = None,
) -> Route:
    origin = _require(origin, "origin").upper()
    destination = _require(destination, "destination").upper()
    if origin == destination:
        raise ValidationError("origin and destination must differ")
    routes = UnitOfWork(session).routes
    if routes.find_by_endpoints(origin, destination) is not None:
        raise ValidationError(f"route {origin}-{destination} already exists")
    return routes.save(
        Route(
            origin=origin,
            destination=destination,
            distance_km=distance_km,
            estimated_minutes=estimated_minutes,
        )
    )


def add_user(
    session: Session,
    *,
    username: str,
    email: str,
    role: UserRole,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    membership: Optional[MembershipStatus] = None,
    employee_id: Optional[str] = None,
    permissions: Optional[PermissionSet] = None,
) -> User:
    """Create a user; which payload fields are kept depends on ``role``."""

    role = UserRole(role)
    user = User(username=_require(username, "username"), email=_require(email, "email"), role=role)
    if role is UserRole.CUSTOMER:
        user.first_name = _require(first_name, "first name")
        user.last_name = last_name or ""
        user.phone = phone
        user.membership = membership or MembershipStatus.REGULAR
    elif role is UserRole.FLIGHT_AGENT:
        user.employee_id = _require(employee_id, "employee id")
    else:
        user.permissions = (permissions or PermissionSet()).serialize()
    users = UnitOfWork(session).users
    if users.find_by_username(user.username) is not None:
        raise ValidationError(f"username {user.username} is taken")
    return users.save(user)


def add_customer(
    session: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    phone: Optional[str] = None,
    username: Optional[str] = None,
) -> User:
    return add_user(
        session,
        username=username or email,
        email=email,
        role=UserRole.CUSTOMER,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
    )


def add_flight(
    session: Session,
    *,
    flight_number: str,
    aircraft_id: int,
    route_id: int,
    departure_time: datetime,
    arrival_time: datetime,
    base_price: Number,
    status: FlightStatus = FlightStatus.SCHEDULED,
) -> Flight:
    """Create a flight and generate its seats from the aircraft's layout."""

    flight_number = _require(flight_number, "flight number").upper()
    if arrival_time <= departure_time:
        raise ValidationError("arrival time must be after departure time")
    price = to_money(base_price)
    if price <= 0:
        raise ValidationError("base price must be greater than 0")
    uow = UnitOfWork(session)
    if uow.flights.find_by_flight_number(flight_number) is not None:
        raise ValidationError(f"flight number {flight_number} already exists")
    aircraft = uow.aircraft.get(aircraft_id)
    route = uow.routes.get(route_id)
    layout = SeatLayout.from_aircraft(aircraft)

    flight = Flight(
        flight_number=flight_number,
        departure_time=departure_time,
        arrival_time=arrival_time,
        status=FlightStatus(status),
        total_seats=layout.total_seats,
        available_seats=layout.total_seats,
        base_price=price,
        aircraft=aircraft,
        route=route,
    )
    uow.flights.save(flight)
    SeatInventory(session).generate_seats(flight, layout)
    return flight


def update_flight_status(session: Session, flight_id: int, status: FlightStatus) -> FlightStatusChange:
    """Set a flight's status directly. Reservations and seats are left as they are."""

    try:
        status = FlightStatus(status)
    except ValueError as exc:
        raise ValidationError(f"unknown flight status: {status!r}") from exc
    flights = UnitOfWork(session).flights
    flight = flights.get(flight_id)
    change = FlightStatusChange(flight.id, flight.flight_number, flight.status, status)
    if flight.status is not status:
        flight.status = status
        flights.update(flight)
        logger.info("flight %s %s -> %s", flight.flight_number, change.old_status.value, status.value)
    return change


def cancel_flight(session: Session, flight_id: int) -> FlightStatusChange:
    """Mark a flight CANCELLED without releasing its seats or reservations.

    Cancelling a cancelled flight changes nothing; a completed flight cannot be
    cancelled.
    """

    flight = UnitOfWork(session).flights.get(flight_id)
    if flight.status is FlightStatus.COMPLETED:
        raise InvalidStateError(f"flight {flight.flight_number} has already completed")
    return update_flight_status(session, flight_id, FlightStatus.CANCELLED)


def record_payment(
    session: Session,
    *,
    amount: Number,
    transaction_ref: str,
    method: PaymentMethod = PaymentMethod.CREDIT_CARD,
) -> Payment:
    """Store a payment reference. Settlement happens outside this package."""

    value = to_money(amount)
    if value <= 0:
        raise ValidationError("payment amount must be greater than 0")
    payment = Payment(
        amount=value,
        method=PaymentMethod(method),
        status=PaymentStatus.COMPLETED,
        transaction_ref=_require(transaction_ref, "transaction reference"),
    )
    return UnitOfWork(session).payments.save(payment)


def list_available_flights(session: Session, *, now: Optional[datetime] = None) -> List[Flight]:
    now = now or utcnow()
    return list(
        session.scalars(
            select(Flight)
            .where(
                Flight.available_seats > 0,
                Flight.status.in_(SEARCHABLE_STATUSES),
                Flight.departure_time > now,
            )
            .order_by(Flight.departure_time)
        )
    )


def search_flights(
    session: Session,
    *,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    departure_date: Optional[datetime] = None,
) -> List[Flight]:
    stmt: Select[tuple[Flight]] = (
        select(Flight)
        .join(Route)
        .where(Flight.status.in_(SEARCHABLE_STATUSES), Flight.available_seats > 0)
    )
    if origin:
        stmt = stmt.where(Route.origin == origin.upper())
    if destination:
        stmt = stmt.where(Route.destination == destination.upper())
    if departure_date:
        start = departure_date.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        stmt = stmt.where(Flight.departure_time >= start, Flight.departure_time < end)
    return list(session.scalars(stmt.order_by(Flight.departure_time)))


def summarize_capacity(session: Session) -> List[dict]:
    rows = session.execute(
        select(
            Flight.id,
            Flight.flight_number,
            Route.origin,
            Route.destination,
            Flight.status,
            Flight.departure_time,
            Flight.available_seats,
            Flight.total_seats,
            func.count(Reservation.id).label("reservations"),
        )
        .join(Route, Flight.route_id == Route.id)
        .outerjoin(Reservation, Reservation.flight_id == Flight.id)
        .group_by(Flight.id, Route.origin, Route.destination)
        .order_by(Flight.departure_time)
    ).all()
    return [
        {
            "id": row.id,
            "flight": row.flight_number,
            "route": f"{row.origin}-{row.destination}",
            "status": row.status.value,
            "departure": row.departure_time.isoformat(timespec="minutes"),
            "available": row.available_seats,
            "capacity": row.total_seats,
            "reservations": row.reservations,
        }
        for row in rows
    ]
