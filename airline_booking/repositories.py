"""Per-entity persistence operations used by the booking engine."""
from __future__ import annotations

from typing import Collection, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, SessionTransaction

from .errors import NotFoundError
from .models import (
    ACTIVE_RESERVATION_STATUSES,
    Aircraft,
    Base,
    Flight,
    Payment,
    Reservation,
    Route,
    Seat,
    Ticket,
    User,
)

ModelT = TypeVar("ModelT", bound=Base)


def _expire_cached(session: Session, model: Type[Base], ids: Collection[int]) -> None:
    """Expire identity-map copies of rows changed by a bulk statement."""

    wanted = set(ids)
    for key, obj in list(session.identity_map.items()):
        if key[0] is model and key[1] and key[1][0] in wanted:
            session.expire(obj)


class Repository(Generic[ModelT]):
    model: Type[ModelT]
    entity_name: str = "entity"

    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        self.session.flush()
        return entity

    def find_by_id(self, entity_id: int) -> Optional[ModelT]:
        return self.session.get(self.model, entity_id)

    def get(self, entity_id: int) -> ModelT:
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def find_all(self) -> List[ModelT]:
        return list(self.session.scalars(select(self.model).order_by(self.model.id)))

    def update(self, entity: ModelT) -> ModelT:
        if entity not in self.session:
            entity = self.session.merge(entity)
        self.session.flush()
        return entity

    def delete(self, entity: ModelT) -> None:
        self.session.delete(entity)
        self.session.flush()


class UserRepository(Repository[User]):
    model = User
    entity_name = "user"

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.scalar(select(User).where(User.username == username))


class AircraftRepository(Repository[Aircraft]):
    model = Aircraft
    entity_name = "aircraft"

    def delete_by_id(self, aircraft_id: int) -> int:
        result = self.session.execute(
            delete(Aircraft).where(Aircraft.id == aircraft_id).execution_options(synchronize_session=False)
        )
        return result.rowcount


class RouteRepository(Repository[Route]):
    model = Route
    entity_name = "route"

    def find_by_endpoints(self, origin: str, destination: str) -> Optional[Route]:
        return self.session.scalar(
            select(Route).where(Route.origin == origin, Route.destination == destination)
        )

    def delete_by_id(self, route_id: int) -> int:
        result = self.session.execute(
            delete(Route).where(Route.id == route_id).execution_options(synchronize_session=False)
        )
        return result.rowcount


class PaymentRepository(Repository[Payment]):
    model = Payment
    entity_name = "payment"


class FlightRepository(Repository[Flight]):
    model = Flight
    entity_name = "flight"

    def find_by_flight_number(self, flight_number: str) -> Optional[Flight]:
        return self.session.scalar(select(Flight).where(Flight.flight_number == flight_number))

    def find_by_aircraft_id(self, aircraft_id: int) -> List[Flight]:
        return list(
            self.session.scalars(
                select(Flight).where(Flight.aircraft_id == aircraft_id).order_by(Flight.id)
            )
        )

    def find_by_route_id(self, route_id: int) -> List[Flight]:
        return list(
            self.session.scalars(select(Flight).where(Flight.route_id == route_id).order_by(Flight.id))
        )

    def take_seats(self, flight_id: int, count: int) -> bool:
        """Decrement the counter only if at least ``count`` seats remain."""

        result = self.session.execute(
            update(Flight)
            .where(Flight.id == flight_id, Flight.available_seats >= count)
            .values(available_seats=Flight.available_seats - count)
            .execution_options(synchronize_session=False)
        )
        _expire_cached(self.session, Flight, [flight_id])
        return result.rowcount == 1

    def return_seats(self, flight_id: int, count: int) -> bool:
        """Increment the counter only if it stays within the physical seat total."""

        result = self.session.execute(
            update(Flight)
            .where(Flight.id == flight_id, Flight.available_seats + count <= Flight.total_seats)
            .values(available_seats=Flight.available_seats + count)
            .execution_options(synchronize_session=False)
        )
        _expire_cached(self.session, Flight, [flight_id])
        return result.rowcount == 1

    def delete_by_ids(self, flight_ids: Sequence[int]) -> int:
        if not flight_ids:
            return 0
        result = self.session.execute(
            delete(Flight).where(Flight.id.in_(flight_ids)).execution_options(synchronize_session=False)
        )
        return result.rowcount


class SeatRepository(Repository[Seat]):
    model = Seat
    entity_name = "seat"

    def find_by_flight_id(self, flight_id: int) -> List[Seat]:
        return list(self.session.scalars(select(Seat).where(Seat.flight_id == flight_id).order_by(Seat.id)))

    def find_available_by_flight_id(self, flight_id: int) -> List[Seat]:
        return list(
            self.session.scalars(
                select(Seat).where(Seat.flight_id == flight_id, Seat.available.is_(True)).order_by(Seat.id)
            )
        )

    def find_by_ids(self, seat_ids: Sequence[int]) -> List[Seat]:
        if not seat_ids:
            return []
        return list(self.session.scalars(select(Seat).where(Seat.id.in_(seat_ids))))

    def count_available(self, flight_id: int) -> int:
        return self.session.scalar(
            select(func.count(Seat.id)).where(Seat.flight_id == flight_id, Seat.available.is_(True))
        ) or 0

    def mark_unavailable(self, flight_id: int, seat_ids: Sequence[int]) -> int:
        """Flip free seats to taken; returns how many actually flipped."""

        result = self.session.execute(
            update(Seat)
            .where(Seat.flight_id == flight_id, Seat.id.in_(seat_ids), Seat.available.is_(True))
            .values(available=False)
            .execution_options(synchronize_session=False)
        )
        _expire_cached(self.session, Seat, seat_ids)
        return result.rowcount

    def mark_available(self, flight_id: int, seat_ids: Sequence[int]) -> int:
        """Flip taken seats back to free; already free seats are left alone."""

        result = self.session.execute(
            update(Seat)
            .where(Seat.flight_id == flight_id, Seat.id.in_(seat_ids), Seat.available.is_(False))
            .values(available=True)
            .execution_options(synchronize_session=False)
        )
        _expire_cached(self.session, Seat, seat_ids)
        return result.rowcount

    def delete_by_flight_ids(self, flight_ids: Sequence[int]) -> int:
        if not flight_ids:
            return 0
        result = self.session.execute(
            delete(Seat).where(Seat.flight_id.in_(flight_ids)).execution_options(synchronize_session=False)
        )
        return result.rowcount


class ReservationRepository(Repository[Reservation]):
    model = Reservation
    entity_name = "reservation"

    def find_by_flight_id(self, flight_id: int) -> List[Reservation]:
        return list(
            self.session.scalars(
                select(Reservation).where(Reservation.flight_id == flight_id).order_by(Reservation.id)
            )
        )

    def find_by_customer_id(self, customer_id: int) -> List[Reservation]:
        return list(
            self.session.scalars(
                select(Reservation).where(Reservation.customer_id == customer_id).order_by(Reservation.id)
            )
        )

    def find_ids_by_flight_ids(self, flight_ids: Sequence[int]) -> List[int]:
        if not flight_ids:
            return []
        return list(self.session.scalars(select(Reservation.id).where(Reservation.flight_id.in_(flight_ids))))

    def delete_by_ids(self, reservation_ids: Sequence[int]) -> int:
        if not reservation_ids:
            return 0
        result = self.session.execute(
            delete(Reservation)
            .where(Reservation.id.in_(reservation_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class TicketRepository(Repository[Ticket]):
    model = Ticket
    entity_name = "ticket"

    def find_by_reservation_id(self, reservation_id: int) -> List[Ticket]:
        return list(
            self.session.scalars(
                select(Ticket).where(Ticket.reservation_id == reservation_id).order_by(Ticket.position)
            )
        )

    def held_seat_ids(self, flight_id: int) -> List[int]:
        """Seat ids referenced by PENDING or CONFIRMED reservations on the flight."""

        return list(
            self.session.scalars(
                select(Ticket.seat_id)
                .join(Reservation, Ticket.reservation_id == Reservation.id)
                .where(
                    Reservation.flight_id == flight_id,
                    Reservation.status.in_(ACTIVE_RESERVATION_STATUSES),
                )
            )
        )

    def delete_by_reservation_ids(self, reservation_ids: Sequence[int]) -> int:
        if not reservation_ids:
            return 0
        result = self.session.execute(
            delete(Ticket)
            .where(Ticket.reservation_id.in_(reservation_ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class UnitOfWork:
    """One session plus the repositories that share it.

    Commit and rollback are left to the owner of the session (normally
    :func:`airline_booking.database.session_scope`); ``begin`` opens a
    savepoint so a group of writes can be undone without ending the outer
    transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session)
        self.aircraft = AircraftRepository(session)
        self.routes = RouteRepository(session)
        self.payments = PaymentRepository(session)
        self.flights = FlightRepository(session)
        self.seats = SeatRepository(session)
        self.reservations = ReservationRepository(session)
        self.tickets = TicketRepository(session)

    def begin(self) -> SessionTransaction:
        return self.session.begin_nested()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
