"""Leaf-to-root deletion of flights, aircraft and routes with all their dependents.

Foreign keys point tickets -> reservations/seats -> flight -> aircraft/route,
so rows are always removed in that order: tickets, reservations, seats, flights
and finally the aircraft or route. Each public call runs in one savepoint; if
any step fails nothing is removed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.orm import Session

from .repositories import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass
class DeletionSummary:
    tickets: int = 0
    reservations: int = 0
    seats: int = 0
    flights: int = 0
    aircraft: int = 0
    routes: int = 0

    def as_dict(self) -> dict:
        return {
            "tickets": self.tickets,
            "reservations": self.reservations,
            "seats": self.seats,
            "flights": self.flights,
            "aircraft": self.aircraft,
            "routes": self.routes,
        }


class CascadingDeletionCoordinator:
    def __init__(self, session: Session) -> None:
        self._uow = UnitOfWork(session)

    def _delete_flights(self, flight_ids: Sequence[int], summary: DeletionSummary) -> None:
        reservation_ids = self._uow.reservations.find_ids_by_flight_ids(flight_ids)
        summary.tickets += self._uow.tickets.delete_by_reservation_ids(reservation_ids)
        summary.reservations += self._uow.reservations.delete_by_ids(reservation_ids)
        summary.seats += self._uow.seats.delete_by_flight_ids(flight_ids)
        summary.flights += self._uow.flights.delete_by_ids(flight_ids)

    def delete_flight(self, flight_id: int) -> DeletionSummary:
        flight = self._uow.flights.get(flight_id)
        flight_number = flight.flight_number
        summary = DeletionSummary()
        with self._uow.begin():
            self._delete_flights([flight_id], summary)
        self._uow.session.expunge(flight)
        logger.info("flight %s deleted: %s", flight_number, summary.as_dict())
        return summary

    def delete_aircraft(self, aircraft_id: int) -> DeletionSummary:
        aircraft = self._uow.aircraft.get(aircraft_id)
        summary = DeletionSummary()
        with self._uow.begin():
            flight_ids = [flight.id for flight in self._uow.flights.find_by_aircraft_id(aircraft_id)]
            if flight_ids:
                self._delete_flights(flight_ids, summary)
            summary.aircraft = self._uow.aircraft.delete_by_id(aircraft_id)
        self._uow.session.expunge(aircraft)
        logger.info("aircraft %s deleted: %s", aircraft_id, summary.as_dict())
        return summary

    def delete_route(self, route_id: int) -> DeletionSummary:
        route = self._uow.routes.get(route_id)
        endpoints = f"{route.origin}-{route.destination}"
        summary = DeletionSummary()
        with self._uow.begin():
            flight_ids = [flight.id for flight in self._uow.flights.find_by_route_id(route_id)]
            if flight_ids:
                self._delete_flights(flight_ids, summary)
            summary.routes = self._uow.routes.delete_by_id(route_id)
        self._uow.session.expunge(route)
        logger.info("route %s deleted: %s", endpoints, summary.as_dict())
        return summary
