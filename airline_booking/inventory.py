"""Seat inventory accounting for a single flight.

Two numbers describe a flight's inventory: the ``available_seats`` counter on
the flight row and the ``available`` flag on each of its seats. Every write
below changes both inside one savepoint, so either every seat in a request
flips together with the counter or nothing changes at all.

The "enough seats left" check and the decrement are a single conditional
``UPDATE``; two concurrent bookings can never both pass the check against the
same counter value.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

from sqlalchemy.orm import Session

from .errors import InsufficientInventoryError, IntegrityError, NotFoundError, ValidationError
from .models import Aircraft, Flight, Seat, SeatClass
from .repositories import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatLayout:
    """Cabin layout used to generate seat rows when a flight is created."""

    total_seats: int
    configuration: str = "3-3"
    first_rows: int = 0
    business_rows: int = 0

    seat_letters = "ABCDEFGHJK"

    @classmethod
    def from_aircraft(cls, aircraft: Aircraft) -> "SeatLayout":
        return cls(
            total_seats=aircraft.total_seats,
            configuration=aircraft.seat_configuration,
            first_rows=aircraft.first_rows,
            business_rows=aircraft.business_rows,
        )

    def row_groups(self) -> List[int]:
        try:
            groups = [int(part) for part in self.configuration.split("-")]
        except ValueError as exc:
            raise ValidationError(f"invalid seat configuration '{self.configuration}'") from exc
        if not groups or any(size <= 0 for size in groups):
            raise ValidationError(f"invalid seat configuration '{self.configuration}'")
        if sum(groups) > len(self.seat_letters):
            raise ValidationError(
                f"seat configuration '{self.configuration}' has more than {len(self.seat_letters)} seats per row"
            )
        return groups

    @property
    def seats_per_row(self) -> int:
        return sum(self.row_groups())

    def validate(self) -> "SeatLayout":
        if self.total_seats <= 0:
            raise ValidationError("total seats must be greater than 0")
        if self.first_rows < 0 or self.business_rows < 0:
            raise ValidationError("cabin row counts cannot be negative")
        self.row_groups()
        return self

    def seat_class_for_row(self, row: int) -> SeatClass:
        if row <= self.first_rows:
            return SeatClass.FIRST
        if row <= self.first_rows + self.business_rows:
            return SeatClass.BUSINESS
        return SeatClass.ECONOMY

    def generate(self) -> List[Tuple[str, SeatClass]]:
        """Return ``(seat_number, seat_class)`` pairs, row by row."""

        per_row = self.validate().seats_per_row
        letters = self.seat_letters[:per_row]
        seats: List[Tuple[str, SeatClass]] = []
        row = 0
        while len(seats) < self.total_seats:
            row += 1
            seat_class = self.seat_class_for_row(row)
            for letter in letters:
                if len(seats) == self.total_seats:
                    break
                seats.append((f"{row}{letter}", seat_class))
        return seats


@dataclass
class InventoryAudit:
    flight_id: int
    counter: int
    total_seats: int
    physical_seats: int
    free_seats: int
    held_but_free: List[int] = field(default_factory=list)
    taken_but_unheld: List[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return (
            self.counter == self.free_seats
            and self.physical_seats == self.total_seats
            and not self.held_but_free
            and not self.taken_but_unheld
        )


def _normalize_ids(seat_ids: Iterable[int]) -> List[int]:
    ids = [int(seat_id) for seat_id in seat_ids]
    if not ids:
        raise ValidationError("at least one seat is required")
    if len(set(ids)) != len(ids):
        raise ValidationError("seat list contains duplicates")
    return ids


class SeatInventory:
    def __init__(self, session: Session) -> None:
        self._uow = UnitOfWork(session)

    def _load_seats(self, flight: Flight, ids: Sequence[int]) -> List[Seat]:
        found = {seat.id: seat for seat in self._uow.seats.find_by_ids(ids)}
        missing = [seat_id for seat_id in ids if seat_id not in found]
        if missing:
            raise NotFoundError("seat", missing[0] if len(missing) == 1 else missing)
        foreign = [seat.seat_number for seat in found.values() if seat.flight_id != flight.id]
        if foreign:
            raise ValidationError(f"seats {foreign} do not belong to flight {flight.flight_number}")
        return [found[seat_id] for seat_id in ids]

    def generate_seats(self, flight: Flight, layout: SeatLayout) -> List[Seat]:
        """Create the flight's seat rows and align its counters with them."""

        seats = [
            Seat(flight_id=flight.id, seat_number=number, seat_class=seat_class, available=True)
            for number, seat_class in layout.generate()
        ]
        self._uow.session.add_all(seats)
        flight.total_seats = len(seats)
        flight.available_seats = len(seats)
        self._uow.session.flush()
        return seats

    def reserve(self, flight_id: int, seat_ids: Iterable[int]) -> List[Seat]:
        """Claim every seat in ``seat_ids`` or none of them."""

        ids = _normalize_ids(seat_ids)
        flight = self._uow.flights.get(flight_id)
        seats = self._load_seats(flight, ids)
        taken = [seat.seat_number for seat in seats if not seat.available]
        if taken:
            raise InsufficientInventoryError(
                f"seats {taken} on flight {flight.flight_number} are no longer available"
            )
        with self._uow.begin():
            if not self._uow.flights.take_seats(flight_id, len(ids)):
                raise InsufficientInventoryError(
                    f"flight {flight.flight_number} has fewer than {len(ids)} seats left"
                )
            flipped = self._uow.seats.mark_unavailable(flight_id, ids)
            if flipped != len(ids):
                raise InsufficientInventoryError(
                    f"only {flipped} of {len(ids)} seats on flight {flight.flight_number} could be claimed"
                )
        logger.debug("reserved %d seats on flight %s", len(ids), flight.flight_number)
        return seats

    def release(self, flight_id: int, seat_ids: Iterable[int]) -> int:
        """Free the given seats. Seats that are already free are skipped.

        Returns the number of seats that actually changed state.
        """

        ids = _normalize_ids(seat_ids)
        flight = self._uow.flights.get(flight_id)
        self._load_seats(flight, ids)
        with self._uow.begin():
            flipped = self._uow.seats.mark_available(flight_id, ids)
            if flipped and not self._uow.flights.return_seats(flight_id, flipped):
                raise IntegrityError(
                    f"releasing {flipped} seats would push flight {flight.flight_number} "
                    f"above its {flight.total_seats} physical seats"
                )
        logger.debug("released %d of %d seats on flight %s", flipped, len(ids), flight.flight_number)
        return flipped

    def available_seats(self, flight_id: int) -> List[Seat]:
        self._uow.flights.get(flight_id)
        return self._uow.seats.find_available_by_flight_id(flight_id)

    def audit(self, flight_id: int) -> InventoryAudit:
        flight = self._uow.flights.get(flight_id)
        seats = self._uow.seats.find_by_flight_id(flight_id)
        held = set(self._uow.tickets.held_seat_ids(flight_id))
        return InventoryAudit(
            flight_id=flight_id,
            counter=flight.available_seats,
            total_seats=flight.total_seats,
            physical_seats=len(seats),
            free_seats=sum(1 for seat in seats if seat.available),
            held_but_free=sorted(seat.id for seat in seats if seat.available and seat.id in held),
            taken_but_unheld=sorted(seat.id for seat in seats if not seat.available and seat.id not in held),
        )
