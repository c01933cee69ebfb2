from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from sqlalchemy import select

from airline_booking.catalog import add_aircraft, add_customer, add_flight, add_route, record_payment
from airline_booking.database import create_session_factory
from airline_booking.inventory import InventoryAudit, SeatInventory
from airline_booking.models import Base, FlightStatus, Seat, utcnow


class Fleet:
    """Builds aircraft, flights, customers and payments for a test database."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._numbers = itertools.count(100)
        self._route_id: Optional[int] = None

    def _route(self, session) -> int:
        if self._route_id is None:
            self._route_id = add_route(session, origin="YYC", destination="YYZ", distance_km=2700.0).id
        return self._route_id

    def aircraft(self, *, seats: int = 6, configuration: str = "3-3", first_rows: int = 0, business_rows: int = 0) -> int:
        with self.session_factory() as session:
            aircraft = add_aircraft(
                session,
                model="737-800",
                manufacturer="Boeing",
                total_seats=seats,
                seat_configuration=configuration,
                first_rows=first_rows,
                business_rows=business_rows,
            )
            session.commit()
            return aircraft.id

    def flight(
        self,
        *,
        aircraft_id: Optional[int] = None,
        seats: int = 6,
        base_price: float = 100,
        departure: Optional[datetime] = None,
        status: FlightStatus = FlightStatus.SCHEDULED,
        business_rows: int = 0,
    ) -> int:
        if aircraft_id is None:
            aircraft_id = self.aircraft(seats=seats, business_rows=business_rows)
        departure = departure or utcnow() + timedelta(days=3)
        with self.session_factory() as session:
            flight = add_flight(
                session,
                flight_number=f"AC{next(self._numbers)}",
                aircraft_id=aircraft_id,
                route_id=self._route(session),
                departure_time=departure,
                arrival_time=departure + timedelta(hours=4),
                base_price=base_price,
                status=status,
            )
            session.commit()
            return flight.id

    def customer(self, name: str = "Test") -> int:
        index = next(self._numbers)
        with self.session_factory() as session:
            customer = add_customer(
                session,
                first_name=name,
                last_name="User",
                email=f"{name.lower()}{index}@example.com",
            )
            session.commit()
            return customer.id

    def payment(self, amount: float = 100) -> int:
        with self.session_factory() as session:
            payment = record_payment(session, amount=amount, transaction_ref=f"TXN-{next(self._numbers)}")
            session.commit()
            return payment.id

    def seat_ids(self, flight_id: int) -> List[int]:
        with self.session_factory() as session:
            return list(session.scalars(select(Seat.id).where(Seat.flight_id == flight_id).order_by(Seat.id)))

    def audit(self, flight_id: int) -> InventoryAudit:
        with self.session_factory() as session:
            return SeatInventory(session).audit(flight_id)


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+pysqlite:///{tmp_path / 'airline-test.db'}")
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def fleet(session_factory) -> Fleet:
    return Fleet(session_factory)
