"""Utilities to populate the database with sample data for tests and demos."""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Dict, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .accounts import Permission, PermissionSet, UserRole
from .catalog import add_aircraft, add_customer, add_flight, add_route, add_user, record_payment
from .errors import BookingError
from .models import Flight, Seat, User, utcnow
from .reservations import ReservationLifecycle

logger = logging.getLogger(__name__)

AIRPORTS: Sequence[str] = (
    "ATL",
    "PEK",
    "DXB",
    "LAX",
    "HND",
    "ORD",
    "LHR",
    "HKG",
    "YYC",
    "YYZ",
)
# model, manufacturer, seats, configuration, first rows, business rows
AIRCRAFT = (
    ("A320", "Airbus", 150, "3-3", 0, 2),
    ("A350", "Airbus", 300, "3-3-3", 2, 5),
    ("737-800", "Boeing", 180, "3-3", 0, 3),
    ("787-9", "Boeing", 240, "2-4-2", 1, 4),
)
FIRST_NAMES = ("Ava", "Noah", "Liam", "Mia", "Lucas", "Emma", "Ethan", "Isabella")
LAST_NAMES = ("Johnson", "Williams", "Smith", "Brown", "Garcia", "Lee")


def _random_datetime(days_from_now: int) -> datetime:
    start = utcnow() + timedelta(days=days_from_now)
    hour = random.randint(5, 22)
    minute = random.choice((0, 15, 30, 45))
    return start.replace(hour=hour, minute=minute, second=0, microsecond=0)


def generate_sample_data(
    session_factory: sessionmaker[Session],
    *,
    flights: int = 25,
    customers: int = 200,
    bookings: int = 500,
) -> Dict[str, int]:
    """Populate the database with deterministic pseudo-random data."""

    random.seed(42)
    with session_factory() as session:
        aircraft_ids = [
            add_aircraft(
                session,
                model=model,
                manufacturer=manufacturer,
                total_seats=seats,
                seat_configuration=configuration,
                first_rows=first_rows,
                business_rows=business_rows,
            ).id
            for model, manufacturer, seats, configuration, first_rows, business_rows in AIRCRAFT
        ]
        route_ids: Dict[tuple, int] = {}
        for index in range(flights):
            origin, destination = random.sample(AIRPORTS, 2)
            if (origin, destination) not in route_ids:
                route_ids[(origin, destination)] = add_route(
                    session,
                    origin=origin,
                    destination=destination,
                    distance_km=float(random.randint(400, 9000)),
                ).id
            departure = _random_datetime(random.randint(1, 10))
            arrival = departure + timedelta(hours=random.randint(2, 12))
            add_flight(
                session,
                flight_number=f"AR{1000 + index}",
                aircraft_id=random.choice(aircraft_ids),
                route_id=route_ids[(origin, destination)],
                departure_time=departure,
                arrival_time=arrival,
                base_price=random.choice((120, 180, 220, 340)),
            )
        for index in range(customers):
            add_customer(
                session,
                first_name=random.choice(FIRST_NAMES),
                last_name=random.choice(LAST_NAMES),
                email=f"test{index}@example.com",
                phone=f"+1-555-{index:04d}",
            )
        add_user(session, username="agent", email="agent@example.com", role=UserRole.FLIGHT_AGENT, employee_id="AG-001")
        add_user(
            session,
            username="admin",
            email="admin@example.com",
            role=UserRole.SYSTEM_ADMIN,
            permissions=PermissionSet.of(Permission.MANAGE_FLIGHTS, Permission.MANAGE_AIRCRAFT),
        )
        session.commit()

    successful = 0
    with session_factory() as session:
        flight_ids = list(session.scalars(select(Flight.id)))
        customer_ids = list(session.scalars(select(User.id).where(User.role == UserRole.CUSTOMER)))
        if not flight_ids or not customer_ids:
            return {"flights": 0, "customers": 0, "bookings": 0}
        lifecycle = ReservationLifecycle(session)
        for index in range(bookings):
            flight_id = random.choice(flight_ids)
            free = list(
                session.scalars(
                    select(Seat.id).where(Seat.flight_id == flight_id, Seat.available.is_(True)).limit(6)
                )
            )
            if not free:
                continue
            seat_ids = random.sample(free, k=min(len(free), random.randint(1, 3)))
            payment_id = None
            if random.random() < 0.7:
                payment_id = record_payment(
                    session,
                    amount=random.choice((120, 180, 220)),
                    transaction_ref=f"TXN-SEED-{index:05d}",
                ).id
            try:
                lifecycle.create(random.choice(customer_ids), flight_id, seat_ids, payment_id=payment_id)
                successful += 1
            except BookingError as exc:
                logger.debug("sample booking skipped: %s", exc)
        session.commit()
    return {"flights": flights, "customers": customers, "bookings": successful}
