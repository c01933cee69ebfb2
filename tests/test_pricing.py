from decimal import Decimal

import pytest

from airline_booking import pricing
from airline_booking.errors import ValidationError
from airline_booking.models import Flight, Seat, SeatClass


def _seats(*classes):
    return [Seat(seat_number=f"{i}A", seat_class=seat_class) for i, seat_class in enumerate(classes, start=1)]


def test_economy_plus_business_on_hundred_dollar_fare():
    flight = Flight(base_price=Decimal("100.00"))
    total = pricing.price(flight, _seats(SeatClass.ECONOMY, SeatClass.BUSINESS))
    assert total == Decimal("250.00")


def test_first_class_multiplier():
    flight = Flight(base_price=Decimal("299.99"))
    assert pricing.price(flight, _seats(SeatClass.FIRST)) == Decimal("749.98")


def test_ten_percent_discount():
    assert pricing.apply_discount(Decimal("250.00"), 10) == Decimal("225.00")


@pytest.mark.parametrize("percent", [0, 100, 12.5])
def test_discount_bounds_are_inclusive(percent):
    result = pricing.apply_discount(Decimal("80.00"), percent)
    assert Decimal("0") <= result <= Decimal("80.00")


@pytest.mark.parametrize("percent", [110, -1, "abc"])
def test_discount_out_of_range_is_rejected(percent):
    with pytest.raises(ValidationError):
        pricing.apply_discount(Decimal("250.00"), percent)


def test_empty_seat_list_prices_to_zero():
    assert pricing.price(Flight(base_price=Decimal("100")), []) == Decimal("0.00")


def test_unknown_seat_class_is_rejected():
    with pytest.raises(ValidationError):
        pricing.multiplier("PREMIUM")
    with pytest.raises(ValidationError):
        pricing.price(Flight(base_price=Decimal("100")), [Seat(seat_number="1A", seat_class=None)])
