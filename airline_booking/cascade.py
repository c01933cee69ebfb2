"""Propagation of aircraft status changes onto the aircraft's future flights."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from .models import Aircraft, AircraftStatus, Flight, FlightStatus, utcnow
from .repositories import UnitOfWork

logger = logging.getLogger(__name__)


class CascadeRule(NamedTuple):
    applies_to: FrozenSet[FlightStatus]
    new_status: FlightStatus


RULES: Dict[AircraftStatus, CascadeRule] = {
    AircraftStatus.ACTIVE: CascadeRule(
        frozenset({FlightStatus.DELAYED, FlightStatus.CANCELLED}), FlightStatus.SCHEDULED
    ),
    AircraftStatus.MAINTENANCE: CascadeRule(
        frozenset({FlightStatus.SCHEDULED, FlightStatus.CANCELLED}), FlightStatus.DELAYED
    ),
    AircraftStatus.INACTIVE: CascadeRule(
        frozenset({FlightStatus.SCHEDULED, FlightStatus.DELAYED}), FlightStatus.CANCELLED
    ),
}


@dataclass(frozen=True)
class FlightStatusChange:
    flight_id: int
    flight_number: str
    old_status: FlightStatus
    new_status: FlightStatus


@dataclass
class CascadeResult:
    aircraft_id: int
    old_status: AircraftStatus
    new_status: AircraftStatus
    changes: List[FlightStatusChange] = field(default_factory=list)

    @property
    def changed_flight_ids(self) -> List[int]:
        return [change.flight_id for change in self.changes]


def as_naive_utc(moment: datetime) -> datetime:
    """Convert an aware timestamp to the naive UTC form stored in the database."""

    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def plan_cascade(
    new_status: AircraftStatus, flights: Iterable[Flight], now: datetime
) -> List[Tuple[Flight, FlightStatus]]:
    """Pick the flights an aircraft status change affects and their new status.

    Only flights departing strictly after ``now`` whose current status is listed
    in the rule are returned.
    """

    rule = RULES[new_status]
    now = as_naive_utc(now)
    return [
        (flight, rule.new_status)
        for flight in flights
        if flight.departure_time > now and flight.status in rule.applies_to
    ]


class StatusCascadePolicy:
    def __init__(self, session: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._uow = UnitOfWork(session)
        self._clock = clock

    def update_aircraft_status(
        self, aircraft_id: int, new_status: AircraftStatus, *, now: Optional[datetime] = None
    ) -> CascadeResult:
        """Set the aircraft's status and cascade it in one savepoint.

        The cascade only runs when the status actually changes. A failure on
        any flight rolls back the aircraft change and every flight change.
        """

        new_status = AircraftStatus(new_status)
        aircraft: Aircraft = self._uow.aircraft.get(aircraft_id)
        result = CascadeResult(aircraft_id=aircraft_id, old_status=aircraft.status, new_status=new_status)
        if aircraft.status is new_status:
            return result

        evaluated_at = as_naive_utc(now or self._clock())
        with self._uow.begin():
            aircraft.status = new_status
            self._uow.aircraft.update(aircraft)
            plan = plan_cascade(new_status, self._uow.flights.find_by_aircraft_id(aircraft_id), evaluated_at)
            for flight, flight_status in plan:
                result.changes.append(
                    FlightStatusChange(flight.id, flight.flight_number, flight.status, flight_status)
                )
                flight.status = flight_status
                self._uow.flights.update(flight)

        logger.info(
            "aircraft %s %s -> %s, %d flights updated",
            aircraft_id,
            result.old_status.value,
            new_status.value,
            len(result.changes),
        )
        return result
