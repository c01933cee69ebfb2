"""Fare calculation: base fare times cabin multiplier, less any discount."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, Union

from .errors import ValidationError
from .models import Flight, Seat, SeatClass

Number = Union[Decimal, int, float, str]

CLASS_MULTIPLIERS: Dict[SeatClass, Decimal] = {
    SeatClass.ECONOMY: Decimal("1.0"),
    SeatClass.BUSINESS: Decimal("1.5"),
    SeatClass.FIRST: Decimal("2.5"),
}

_CENT = Decimal("0.01")


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps float inputs like 0.1 from dragging binary noise along
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"not a number: {value!r}") from exc


def to_money(value: Number) -> Decimal:
    return _as_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def multiplier(seat_class: SeatClass) -> Decimal:
    try:
        return CLASS_MULTIPLIERS[seat_class]
    except KeyError as exc:
        raise ValidationError(f"unknown seat class: {seat_class!r}") from exc


def seat_price(base_price: Number, seat_class: SeatClass) -> Decimal:
    return to_money(_as_decimal(base_price) * multiplier(seat_class))


def price(flight: Flight, seats: Iterable[Seat]) -> Decimal:
    """Sum of ``base_price * multiplier(seat_class)`` over ``seats``."""

    base = _as_decimal(flight.base_price)
    total = sum((base * multiplier(seat.seat_class) for seat in seats), Decimal("0"))
    return to_money(total)


def validate_discount(percent: Number) -> Decimal:
    pct = _as_decimal(percent)
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValidationError(f"discount percent must be between 0 and 100, got {percent}")
    return pct


def apply_discount(total: Number, percent: Number) -> Decimal:
    """Return ``total`` reduced by ``percent`` (0-100 inclusive)."""

    pct = validate_discount(percent)
    return to_money(_as_decimal(total) * (Decimal("1") - pct / Decimal("100")))
