from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from airline_booking import services
from airline_booking.database import session_scope
from airline_booking.deletion import CascadingDeletionCoordinator
from airline_booking.errors import IntegrityError, NotFoundError
from airline_booking.catalog import add_route
from airline_booking.models import Aircraft, Flight, Reservation, Route, Seat, Ticket
from airline_booking.repositories import FlightRepository, SeatRepository
from airline_booking.reservations import ReservationLifecycle


def _counts(session_factory):
    with session_factory() as session:
        return {
            model.__tablename__: session.scalar(select(func.count()).select_from(model))
            for model in (Aircraft, Route, Flight, Seat, Reservation, Ticket)
        }


def _book(session_factory, customer_id, flight_id, seat_ids):
    with session_scope(session_factory) as session:
        return ReservationLifecycle(session).create(customer_id, flight_id, seat_ids).id


@pytest.fixture
def booked_flight(session_factory, fleet):
    flight_id = fleet.flight(seats=8)
    seat_ids = fleet.seat_ids(flight_id)
    _book(session_factory, fleet.customer(), flight_id, seat_ids[:2])
    _book(session_factory, fleet.customer(), flight_id, seat_ids[2:5])
    return flight_id


def test_delete_flight_removes_every_dependent(session_factory, booked_flight):
    with session_scope(session_factory) as session:
        summary = CascadingDeletionCoordinator(session).delete_flight(booked_flight)

    assert summary.as_dict() == {"tickets": 5, "reservations": 2, "seats": 8, "flights": 1, "aircraft": 0, "routes": 0}
    counts = _counts(session_factory)
    assert counts["flights"] == counts["seats"] == counts["reservations"] == counts["tickets"] == 0
    assert counts["aircraft"] == 1


def test_delete_flight_leaves_other_flights_alone(session_factory, fleet, booked_flight):
    other = fleet.flight(seats=4)
    _book(session_factory, fleet.customer(), other, fleet.seat_ids(other)[:1])

    with session_scope(session_factory) as session:
        CascadingDeletionCoordinator(session).delete_flight(booked_flight)

    counts = _counts(session_factory)
    assert counts["flights"] == 1
    assert counts["seats"] == 4
    assert counts["tickets"] == 1
    assert fleet.audit(other).consistent


def test_failed_delete_leaves_everything_in_place(session_factory, booked_flight, monkeypatch):
    before = _counts(session_factory)

    def broken(self, flight_ids):
        raise OperationalError("DELETE FROM seats", {}, Exception("database is locked"))

    monkeypatch.setattr(SeatRepository, "delete_by_flight_ids", broken)
    result = services.delete_flight(session_factory, flight_id=booked_flight)

    assert not result.success
    assert isinstance(result.error, IntegrityError)
    assert _counts(session_factory) == before


def test_delete_aircraft_removes_all_its_flights(session_factory, fleet):
    aircraft_id = fleet.aircraft(seats=6)
    flights = [fleet.flight(aircraft_id=aircraft_id) for _ in range(3)]
    for flight_id in flights[:2]:
        _book(session_factory, fleet.customer(), flight_id, fleet.seat_ids(flight_id)[:2])
    spare = fleet.flight(seats=4)

    with session_scope(session_factory) as session:
        summary = CascadingDeletionCoordinator(session).delete_aircraft(aircraft_id)

    assert summary.as_dict() == {"tickets": 4, "reservations": 2, "seats": 18, "flights": 3, "aircraft": 1, "routes": 0}
    counts = _counts(session_factory)
    assert counts["aircraft"] == 1
    assert counts["flights"] == 1
    assert counts["seats"] == 4
    assert fleet.audit(spare).consistent


def test_delete_idle_aircraft(session_factory, fleet):
    aircraft_id = fleet.aircraft()
    with session_scope(session_factory) as session:
        summary = CascadingDeletionCoordinator(session).delete_aircraft(aircraft_id)
    assert summary.aircraft == 1
    assert summary.flights == 0


def test_unknown_ids_are_not_found(session_factory):
    with session_scope(session_factory) as session:
        coordinator = CascadingDeletionCoordinator(session)
        with pytest.raises(NotFoundError):
            coordinator.delete_flight(31337)
        with pytest.raises(NotFoundError):
            coordinator.delete_aircraft(31337)
        with pytest.raises(NotFoundError):
            coordinator.delete_route(31337)


def test_delete_route_removes_its_flights_but_keeps_aircraft(session_factory, fleet, booked_flight):
    aircraft_id = fleet.aircraft(seats=4)
    second = fleet.flight(aircraft_id=aircraft_id)
    _book(session_factory, fleet.customer(), second, fleet.seat_ids(second)[:1])
    with session_scope(session_factory) as session:
        other_route = add_route(session, origin="YVR", destination="YUL").id

    with session_scope(session_factory) as session:
        summary = CascadingDeletionCoordinator(session).delete_route(fleet._route_id)

    assert summary.as_dict() == {"tickets": 6, "reservations": 3, "seats": 12, "flights": 2, "aircraft": 0, "routes": 1}
    counts = _counts(session_factory)
    assert counts["flights"] == counts["seats"] == counts["reservations"] == counts["tickets"] == 0
    assert counts["aircraft"] == 2
    with session_factory() as session:
        assert list(session.scalars(select(Route.id))) == [other_route]


def test_delete_idle_route(session_factory):
    with session_scope(session_factory) as session:
        route_id = add_route(session, origin="SFO", destination="SEA").id
    with session_scope(session_factory) as session:
        summary = CascadingDeletionCoordinator(session).delete_route(route_id)
    assert (summary.routes, summary.flights) == (1, 0)
    assert _counts(session_factory)["routes"] == 0


def test_failed_route_delete_leaves_everything_in_place(session_factory, fleet, booked_flight, monkeypatch):
    before = _counts(session_factory)

    def broken(self, flight_ids):
        raise OperationalError("DELETE FROM flights", {}, Exception("database is locked"))

    monkeypatch.setattr(FlightRepository, "delete_by_ids", broken)
    result = services.delete_route(session_factory, route_id=fleet._route_id)

    assert not result.success
    assert isinstance(result.error, IntegrityError)
    assert _counts(session_factory) == before
    assert fleet.audit(booked_flight).consistent
