from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from airline_booking import services
from airline_booking.cascade import StatusCascadePolicy, plan_cascade
from airline_booking.database import session_scope
from airline_booking.errors import IntegrityError, NotFoundError
from airline_booking.models import Aircraft, AircraftStatus, Flight, FlightStatus, utcnow
from airline_booking.repositories import FlightRepository


def _statuses(session_factory, aircraft_id):
    with session_factory() as session:
        aircraft = session.get(Aircraft, aircraft_id)
        return aircraft.status, {flight.id: flight.status for flight in aircraft.flights}


@pytest.mark.parametrize(
    "aircraft_status, flight_status, expected",
    [
        (AircraftStatus.ACTIVE, FlightStatus.DELAYED, FlightStatus.SCHEDULED),
        (AircraftStatus.ACTIVE, FlightStatus.CANCELLED, FlightStatus.SCHEDULED),
        (AircraftStatus.ACTIVE, FlightStatus.SCHEDULED, None),
        (AircraftStatus.MAINTENANCE, FlightStatus.SCHEDULED, FlightStatus.DELAYED),
        (AircraftStatus.MAINTENANCE, FlightStatus.CANCELLED, FlightStatus.DELAYED),
        (AircraftStatus.MAINTENANCE, FlightStatus.DELAYED, None),
        (AircraftStatus.INACTIVE, FlightStatus.SCHEDULED, FlightStatus.CANCELLED),
        (AircraftStatus.INACTIVE, FlightStatus.DELAYED, FlightStatus.CANCELLED),
        (AircraftStatus.INACTIVE, FlightStatus.COMPLETED, None),
    ],
)
def test_plan_follows_rule_table(aircraft_status, flight_status, expected):
    now = utcnow()
    flight = Flight(flight_number="AC1", status=flight_status, departure_time=now + timedelta(hours=1))
    plan = plan_cascade(aircraft_status, [flight], now)
    assert plan == ([] if expected is None else [(flight, expected)])


def test_plan_skips_flights_that_already_departed():
    now = utcnow()
    flight = Flight(flight_number="AC1", status=FlightStatus.SCHEDULED, departure_time=now)
    assert plan_cascade(AircraftStatus.INACTIVE, [flight], now) == []


def test_maintenance_delays_future_scheduled_flights(session_factory, fleet):
    now = utcnow()
    aircraft_id = fleet.aircraft()
    future = fleet.flight(aircraft_id=aircraft_id, departure=now + timedelta(days=2))
    past = fleet.flight(aircraft_id=aircraft_id, departure=now - timedelta(days=2))
    delayed = fleet.flight(aircraft_id=aircraft_id, status=FlightStatus.DELAYED)
    completed = fleet.flight(aircraft_id=aircraft_id, status=FlightStatus.COMPLETED)

    with session_scope(session_factory) as session:
        result = StatusCascadePolicy(session).update_aircraft_status(
            aircraft_id, AircraftStatus.MAINTENANCE, now=now
        )

    assert result.changed_flight_ids == [future]
    assert result.old_status is AircraftStatus.ACTIVE
    status, flights = _statuses(session_factory, aircraft_id)
    assert status is AircraftStatus.MAINTENANCE
    assert flights == {
        future: FlightStatus.DELAYED,
        past: FlightStatus.SCHEDULED,
        delayed: FlightStatus.DELAYED,
        completed: FlightStatus.COMPLETED,
    }


def test_reactivation_restores_delayed_and_cancelled_flights(session_factory, fleet):
    aircraft_id = fleet.aircraft()
    delayed = fleet.flight(aircraft_id=aircraft_id, status=FlightStatus.DELAYED)
    cancelled = fleet.flight(aircraft_id=aircraft_id, status=FlightStatus.CANCELLED)
    with session_scope(session_factory) as session:
        session.get(Aircraft, aircraft_id).status = AircraftStatus.MAINTENANCE

    with session_scope(session_factory) as session:
        StatusCascadePolicy(session).update_aircraft_status(aircraft_id, AircraftStatus.ACTIVE)

    assert _statuses(session_factory, aircraft_id)[1] == {
        delayed: FlightStatus.SCHEDULED,
        cancelled: FlightStatus.SCHEDULED,
    }


def test_unchanged_status_does_not_cascade(session_factory, fleet):
    aircraft_id = fleet.aircraft()
    delayed = fleet.flight(aircraft_id=aircraft_id, status=FlightStatus.DELAYED)

    with session_scope(session_factory) as session:
        result = StatusCascadePolicy(session).update_aircraft_status(aircraft_id, AircraftStatus.ACTIVE)

    assert result.changes == []
    assert _statuses(session_factory, aircraft_id)[1] == {delayed: FlightStatus.DELAYED}


def test_unknown_aircraft_is_not_found(session_factory):
    with session_scope(session_factory) as session:
        with pytest.raises(NotFoundError):
            StatusCascadePolicy(session).update_aircraft_status(404, AircraftStatus.INACTIVE)


def test_failure_midway_rolls_back_every_change(session_factory, fleet, monkeypatch):
    aircraft_id = fleet.aircraft()
    flights = [fleet.flight(aircraft_id=aircraft_id) for _ in range(3)]
    original_update = FlightRepository.update
    calls = []

    def flaky_update(self, entity):
        calls.append(entity.id)
        if len(calls) == 2:
            raise OperationalError("UPDATE flights", {}, Exception("disk I/O error"))
        return original_update(self, entity)

    monkeypatch.setattr(FlightRepository, "update", flaky_update)

    result = services.update_aircraft_status(
        session_factory, aircraft_id=aircraft_id, status=AircraftStatus.INACTIVE
    )

    assert not result.success
    assert isinstance(result.error, IntegrityError)
    status, statuses = _statuses(session_factory, aircraft_id)
    assert status is AircraftStatus.ACTIVE
    assert statuses == {flight_id: FlightStatus.SCHEDULED for flight_id in flights}


def test_plan_accepts_timezone_aware_now():
    now = utcnow()
    flight = Flight(flight_number="AC1", status=FlightStatus.SCHEDULED, departure_time=now + timedelta(hours=1))
    aware = now.replace(tzinfo=timezone.utc)
    assert plan_cascade(AircraftStatus.MAINTENANCE, [flight], aware) == [(flight, FlightStatus.DELAYED)]
    later = (now + timedelta(hours=2)).replace(tzinfo=timezone.utc)
    assert plan_cascade(AircraftStatus.MAINTENANCE, [flight], later) == []


def test_aware_evaluation_time_is_compared_in_utc(session_factory, fleet):
    aircraft_id = fleet.aircraft()
    future = fleet.flight(aircraft_id=aircraft_id, departure=utcnow() + timedelta(hours=3))

    result = services.update_aircraft_status(
        session_factory,
        aircraft_id=aircraft_id,
        status=AircraftStatus.MAINTENANCE,
        now=datetime.now(timezone.utc),
    )

    assert result.unwrap().changed_flight_ids == [future]
    assert _statuses(session_factory, aircraft_id)[1] == {future: FlightStatus.DELAYED}


def test_injected_clock_decides_what_has_departed(session_factory, fleet):
    aircraft_id = fleet.aircraft()
    soon = fleet.flight(aircraft_id=aircraft_id, departure=utcnow() + timedelta(hours=1))
    later = fleet.flight(aircraft_id=aircraft_id, departure=utcnow() + timedelta(days=2))

    with session_scope(session_factory) as session:
        policy = StatusCascadePolicy(session, clock=lambda: utcnow() + timedelta(hours=5))
        result = policy.update_aircraft_status(aircraft_id, AircraftStatus.INACTIVE)

    assert result.changed_flight_ids == [later]
    assert _statuses(session_factory, aircraft_id)[1] == {
        soon: FlightStatus.SCHEDULED,
        later: FlightStatus.CANCELLED,
    }
