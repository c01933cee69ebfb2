import pytest
from sqlalchemy import select

from airline_booking import cli
from airline_booking.models import Reservation


@pytest.fixture
def db_url(tmp_path, session_factory):
    # same file the session_factory fixture created
    return f"sqlite+pysqlite:///{tmp_path / 'airline-test.db'}"


def _run(db_url, *args):
    return cli.main(["--db-url", db_url, "--log-level", "warning", *args])


def test_init_db_on_fresh_file(tmp_path, capsys):
    assert _run(f"sqlite+pysqlite:///{tmp_path / 'fresh.db'}", "init-db") == 0
    assert "Database ready." in capsys.readouterr().out
    assert (tmp_path / "fresh.db").exists()


def test_seed_then_list_flights(tmp_path, capsys):
    url = f"sqlite+pysqlite:///{tmp_path / 'seeded.db'}"
    assert _run(url, "seed", "--flights", "3", "--customers", "4", "--bookings", "6") == 0
    seeded = capsys.readouterr().out
    assert "bookings" in seeded

    assert _run(url, "flights") == 0
    listing = capsys.readouterr().out
    for number in ("AR1000", "AR1001", "AR1002"):
        assert number in listing


def test_book_and_cancel(db_url, fleet, capsys):
    flight_id = fleet.flight(seats=6)
    seat_ids = fleet.seat_ids(flight_id)
    customer_id = fleet.customer()

    assert _run(db_url, "book", str(flight_id), str(customer_id), f"{seat_ids[0]},{seat_ids[1]}") == 0
    out = capsys.readouterr().out
    assert "PENDING" in out
    assert "1A, 1B" in out

    assert _run(db_url, "seats", str(flight_id)) == 0
    assert "1A" not in capsys.readouterr().out

    with fleet.session_factory() as session:
        reservation_id = session.scalar(select(Reservation.id))
    assert _run(db_url, "cancel", str(reservation_id)) == 0
    assert "CANCELLED" in capsys.readouterr().out
    assert fleet.audit(flight_id).counter == 6


def test_failed_booking_reports_error(db_url, fleet, capsys):
    flight_id = fleet.flight(seats=6)
    customer_id = fleet.customer()

    assert _run(db_url, "book", str(flight_id), str(customer_id), "999") == 1
    assert "not found" in capsys.readouterr().err


def test_aircraft_status_and_delete(db_url, fleet, capsys):
    aircraft_id = fleet.aircraft()
    fleet.flight(aircraft_id=aircraft_id)

    assert _run(db_url, "aircraft-status", str(aircraft_id), "INACTIVE") == 0
    out = capsys.readouterr().out
    assert "ACTIVE -> INACTIVE" in out
    assert "CANCELLED" in out

    assert _run(db_url, "delete-aircraft", str(aircraft_id)) == 0
    assert "aircraft" in capsys.readouterr().out


def test_bad_seat_list_exits_with_usage_error(db_url):
    with pytest.raises(SystemExit):
        _run(db_url, "book", "1", "1", "a,b")


def test_complete_reservation(db_url, fleet, capsys):
    flight_id = fleet.flight()
    customer_id = fleet.customer()
    payment_id = fleet.payment()
    seat_id = fleet.seat_ids(flight_id)[0]

    assert _run(db_url, "book", str(flight_id), str(customer_id), str(seat_id), "--payment-id", str(payment_id)) == 0
    capsys.readouterr()
    with fleet.session_factory() as session:
        reservation_id = session.scalar(select(Reservation.id))

    assert _run(db_url, "complete", str(reservation_id)) == 0
    assert "COMPLETED" in capsys.readouterr().out
    assert _run(db_url, "complete", str(reservation_id)) == 1


def test_flight_status_cancel_and_delete_route(db_url, fleet, capsys):
    flight_id = fleet.flight()

    assert _run(db_url, "flight-status", str(flight_id), "DELAYED") == 0
    assert "Flight AC100: SCHEDULED -> DELAYED" in capsys.readouterr().out

    assert _run(db_url, "cancel-flight", str(flight_id)) == 0
    assert "DELAYED -> CANCELLED" in capsys.readouterr().out

    assert _run(db_url, "delete-route", str(fleet._route_id)) == 0
    out = capsys.readouterr().out
    assert "routes" in out
    assert _run(db_url, "delete-route", str(fleet._route_id)) == 1
