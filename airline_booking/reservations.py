"""Reservation state machine.

``PENDING -> CONFIRMED | CANCELLED`` and ``CONFIRMED -> CANCELLED | COMPLETED``;
CANCELLED and COMPLETED are terminal. Seats are claimed through
:class:`~airline_booking.inventory.SeatInventory` before anything is written
and the fare is fixed into the reservation when it is created.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy.orm import Session

from . import pricing
from .accounts import UserRole
from .errors import InvalidStateError, ValidationError
from .inventory import SeatInventory
from .models import (
    FlightStatus,
    Reservation,
    ReservationStatus,
    Seat,
    Ticket,
    User,
    utcnow,
)
from .repositories import UnitOfWork

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[ReservationStatus, FrozenSet[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED}),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}

BOOKABLE_FLIGHT_STATUSES = (FlightStatus.SCHEDULED, FlightStatus.DELAYED)


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def _issue_ticket(customer: User, seat: Seat, flight_number: str) -> Ticket:
    return Ticket(
        ticket_number=f"{flight_number}-{seat.seat_number}-{secrets.token_hex(3).upper()}",
        seat=seat,
        passenger_name=customer.display_name,
        barcode=uuid.uuid4().hex,
    )


class ReservationLifecycle:
    def __init__(
        self,
        session: Session,
        *,
        inventory: Optional[SeatInventory] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow = UnitOfWork(session)
        self._inventory = inventory or SeatInventory(session)
        self._clock = clock

    def get(self, reservation_id: int) -> Reservation:
        return self._uow.reservations.get(reservation_id)

    def for_customer(self, customer_id: int) -> List[Reservation]:
        self._uow.users.get(customer_id)
        return self._uow.reservations.find_by_customer_id(customer_id)

    def for_flight(self, flight_id: int) -> List[Reservation]:
        self._uow.flights.get(flight_id)
        return self._uow.reservations.find_by_flight_id(flight_id)

    def _transition(self, reservation: Reservation, target: ReservationStatus) -> None:
        if not can_transition(reservation.status, target):
            raise InvalidStateError(
                f"reservation {reservation.id} cannot move from {reservation.status.value} to {target.value}"
            )
        reservation.status = target

    def create(
        self,
        customer_id: int,
        flight_id: int,
        seat_ids: Iterable[int],
        *,
        payment_id: Optional[int] = None,
        discount_percent: pricing.Number = 0,
    ) -> Reservation:
        """Claim the seats, price them and persist the booking.

        The reservation starts CONFIRMED when a payment is supplied and PENDING
        otherwise. Nothing is written unless every seat could be claimed.
        """

        ids = list(seat_ids)
        if not ids:
            raise ValidationError("at least one seat is required")
        pricing.validate_discount(discount_percent)
        customer = self._uow.users.get(customer_id)
        if customer.role is not UserRole.CUSTOMER:
            raise ValidationError(f"user {customer.username} is not a customer account")
        flight = self._uow.flights.get(flight_id)
        if flight.status not in BOOKABLE_FLIGHT_STATUSES:
            raise InvalidStateError(f"flight {flight.flight_number} is {flight.status.value}")
        payment = self._uow.payments.get(payment_id) if payment_id is not None else None

        with self._uow.begin():
            seats = self._inventory.reserve(flight_id, ids)
            total = pricing.apply_discount(pricing.price(flight, seats), discount_percent)
            reservation = Reservation(
                booked_at=self._clock(),
                status=ReservationStatus.CONFIRMED if payment else ReservationStatus.PENDING,
                total_price=total,
                customer=customer,
                flight=flight,
                payment=payment,
            )
            for seat in seats:
                reservation.tickets.append(_issue_ticket(customer, seat, flight.flight_number))
            self._uow.reservations.save(reservation)

        logger.info(
            "reservation %s created on flight %s for %d seats (%s, total %s)",
            reservation.id,
            flight.flight_number,
            len(seats),
            reservation.status.value,
            reservation.total_price,
        )
        return reservation

    def confirm(self, reservation_id: int, payment_id: int) -> Reservation:
        reservation = self.get(reservation_id)
        if reservation.status is not ReservationStatus.PENDING:
            raise InvalidStateError(
                f"only pending reservations can be confirmed; reservation {reservation_id} "
                f"is {reservation.status.value}"
            )
        payment = self._uow.payments.get(payment_id)
        reservation.payment = payment
        self._transition(reservation, ReservationStatus.CONFIRMED)
        self._uow.reservations.update(reservation)
        logger.info("reservation %s confirmed with payment %s", reservation_id, payment_id)
        return reservation

    def cancel(self, reservation_id: int) -> Reservation:
        """Release the reservation's seats and mark it CANCELLED.

        Cancelling an already cancelled reservation is a no-op.
        """

        reservation = self.get(reservation_id)
        if reservation.status is ReservationStatus.CANCELLED:
            return reservation
        if reservation.status is ReservationStatus.COMPLETED:
            raise InvalidStateError(f"reservation {reservation_id} is completed and cannot be cancelled")

        with self._uow.begin():
            seat_ids = [ticket.seat_id for ticket in reservation.tickets]
            released = self._inventory.release(reservation.flight_id, seat_ids)
            self._transition(reservation, ReservationStatus.CANCELLED)
            self._uow.reservations.update(reservation)
        logger.info("reservation %s cancelled, %d seats released", reservation_id, released)
        return reservation

    def complete(self, reservation_id: int) -> Reservation:
        reservation = self.get(reservation_id)
        self._transition(reservation, ReservationStatus.COMPLETED)
        self._uow.reservations.update(reservation)
        logger.info("reservation %s completed", reservation_id)
        return reservation

    def modify(self, reservation_id: int, new_seat_ids: Iterable[int]) -> Reservation:
        """Swap a booking onto ``new_seat_ids``.

        The old reservation is cancelled and a new one created for the same
        customer, flight and payment. Both steps share one savepoint: if the new
        seats cannot be claimed the cancellation is undone and the original
        booking stays as it was.
        """

        ids = list(new_seat_ids)
        if not ids:
            raise ValidationError("at least one seat is required")
        old = self.get(reservation_id)
        if not old.is_active:
            raise InvalidStateError(
                f"reservation {reservation_id} is {old.status.value} and cannot be modified"
            )
        with self._uow.begin():
            self.cancel(old.id)
            replacement = self.create(old.customer_id, old.flight_id, ids, payment_id=old.payment_id)
        logger.info("reservation %s replaced by %s", reservation_id, replacement.id)
        return replacement
