"""Command line interface for the airline booking engine."""
from __future__ import annotations

import argparse
import sys
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker
from tabulate import tabulate

from . import services
from .cascade import CascadeResult, FlightStatusChange
from .catalog import summarize_capacity
from .config import Settings, configure_logging, load_settings
from .database import init_db_from_settings, session_scope
from .dataset import generate_sample_data
from .deletion import DeletionSummary
from .inventory import SeatInventory
from .models import AircraftStatus, FlightStatus


def _render_table(rows: Sequence[dict]) -> str:
    if not rows:
        return "(no rows)"
    return tabulate(rows, headers="keys", tablefmt="github")


def _seat_ids(raw: str) -> List[int]:
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"seat ids must be comma separated integers: {raw}") from exc


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Book seats and manage flight inventory.")
    parser.add_argument("--db-url", help="SQLAlchemy database URL (default: $AIRLINE_BOOKING_DB_URL).")
    parser.add_argument("--log-level", help="Logging level (default: $AIRLINE_BOOKING_LOG_LEVEL or INFO).")
    parser.add_argument("--echo-sql", action="store_true", help="Echo SQL statements.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database schema.")

    seed = commands.add_parser("seed", help="Populate the database with sample data.")
    seed.add_argument("--flights", type=int, default=25)
    seed.add_argument("--customers", type=int, default=200)
    seed.add_argument("--bookings", type=int, default=500)

    commands.add_parser("flights", help="Show seat capacity per flight.")

    seats = commands.add_parser("seats", help="List the free seats of a flight.")
    seats.add_argument("flight_id", type=int)

    book = commands.add_parser("book", help="Book seats on a flight.")
    book.add_argument("flight_id", type=int)
    book.add_argument("customer_id", type=int)
    book.add_argument("seat_ids", type=_seat_ids, help="Comma separated seat ids, e.g. 12,13.")
    book.add_argument("--payment-id", type=int, help="Payment reference; books as CONFIRMED.")
    book.add_argument("--discount", type=float, default=0.0, help="Discount percent (0-100).")

    confirm = commands.add_parser("confirm", help="Confirm a pending reservation.")
    confirm.add_argument("reservation_id", type=int)
    confirm.add_argument("payment_id", type=int)

    cancel = commands.add_parser("cancel", help="Cancel a reservation and release its seats.")
    cancel.add_argument("reservation_id", type=int)

    modify = commands.add_parser("modify", help="Move a reservation onto other seats.")
    modify.add_argument("reservation_id", type=int)
    modify.add_argument("seat_ids", type=_seat_ids)

    complete = commands.add_parser("complete", help="Mark a confirmed reservation as flown.")
    complete.add_argument("reservation_id", type=int)

    status = commands.add_parser("aircraft-status", help="Change aircraft status and cascade it to flights.")
    status.add_argument("aircraft_id", type=int)
    status.add_argument("status", choices=[item.value for item in AircraftStatus])

    flight_status = commands.add_parser("flight-status", help="Set the status of a single flight.")
    flight_status.add_argument("flight_id", type=int)
    flight_status.add_argument("status", choices=[item.value for item in FlightStatus])

    cancel_flight = commands.add_parser("cancel-flight", help="Mark a flight cancelled; reservations are kept.")
    cancel_flight.add_argument("flight_id", type=int)

    delete_flight = commands.add_parser("delete-flight", help="Delete a flight with all dependents.")
    delete_flight.add_argument("flight_id", type=int)

    delete_aircraft = commands.add_parser("delete-aircraft", help="Delete an aircraft and all its flights.")
    delete_aircraft.add_argument("aircraft_id", type=int)

    delete_route = commands.add_parser("delete-route", help="Delete a route and all its flights.")
    delete_route.add_argument("route_id", type=int)

    return parser.parse_args(list(argv))


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    return Settings(
        db_url=args.db_url or settings.db_url,
        echo_sql=args.echo_sql or settings.echo_sql,
        log_level=(args.log_level or settings.log_level).upper(),
        sqlite_timeout=settings.sqlite_timeout,
    )


def _print_result(result: services.OperationResult) -> int:
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    value = result.value
    if isinstance(value, services.ReservationView):
        print(
            _render_table(
                [
                    {
                        "reservation": value.id,
                        "status": value.status.value,
                        "flight": value.flight_id,
                        "seats": ", ".join(value.seat_numbers),
                        "total": f"{value.total_price:.2f}",
                    }
                ]
            )
        )
    elif isinstance(value, DeletionSummary):
        print(_render_table([value.as_dict()]))
    elif isinstance(value, CascadeResult):
        print(f"Aircraft {value.aircraft_id}: {value.old_status.value} -> {value.new_status.value}")
        print(
            _render_table(
                [
                    {
                        "flight": change.flight_number,
                        "from": change.old_status.value,
                        "to": change.new_status.value,
                    }
                    for change in value.changes
                ]
            )
        )
    elif isinstance(value, FlightStatusChange):
        print(f"Flight {value.flight_number}: {value.old_status.value} -> {value.new_status.value}")
    return 0


def _run_command(args: argparse.Namespace, session_factory: sessionmaker[Session]) -> int:
    if args.command == "init-db":
        print("Database ready.")
        return 0
    if args.command == "seed":
        summary = generate_sample_data(
            session_factory, flights=args.flights, customers=args.customers, bookings=args.bookings
        )
        print(_render_table([summary]))
        return 0
    if args.command == "flights":
        with session_scope(session_factory) as session:
            print(_render_table(summarize_capacity(session)))
        return 0
    if args.command == "seats":
        with session_scope(session_factory) as session:
            rows = [
                {"id": seat.id, "seat": seat.seat_number, "class": seat.seat_class.value}
                for seat in SeatInventory(session).available_seats(args.flight_id)
            ]
        print(_render_table(rows))
        return 0
    if args.command == "book":
        return _print_result(
            services.book_seats(
                session_factory,
                customer_id=args.customer_id,
                flight_id=args.flight_id,
                seat_ids=args.seat_ids,
                payment_id=args.payment_id,
                discount_percent=args.discount,
            )
        )
    if args.command == "confirm":
        return _print_result(
            services.confirm_reservation(
                session_factory, reservation_id=args.reservation_id, payment_id=args.payment_id
            )
        )
    if args.command == "cancel":
        return _print_result(services.cancel_reservation(session_factory, reservation_id=args.reservation_id))
    if args.command == "modify":
        return _print_result(
            services.modify_reservation(
                session_factory, reservation_id=args.reservation_id, seat_ids=args.seat_ids
            )
        )
    if args.command == "complete":
        return _print_result(services.complete_reservation(session_factory, reservation_id=args.reservation_id))
    if args.command == "aircraft-status":
        return _print_result(
            services.update_aircraft_status(
                session_factory, aircraft_id=args.aircraft_id, status=AircraftStatus(args.status)
            )
        )
    if args.command == "flight-status":
        return _print_result(
            services.update_flight_status(
                session_factory, flight_id=args.flight_id, status=FlightStatus(args.status)
            )
        )
    if args.command == "cancel-flight":
        return _print_result(services.cancel_flight(session_factory, flight_id=args.flight_id))
    if args.command == "delete-flight":
        return _print_result(services.delete_flight(session_factory, flight_id=args.flight_id))
    if args.command == "delete-aircraft":
        return _print_result(services.delete_aircraft(session_factory, aircraft_id=args.aircraft_id))
    if args.command == "delete-route":
        return _print_result(services.delete_route(session_factory, route_id=args.route_id))
    raise ValueError(f"Unsupported command '{args.command}'.")


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = _settings_from_args(args)
    configure_logging(settings.log_level)
    try:
        session_factory = init_db_from_settings(settings)
        return _run_command(args, session_factory)
    except Exception as exc:  # pragma: no cover - CLI entry point
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
