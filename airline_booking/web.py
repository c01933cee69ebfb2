"""FastAPI application exposing the booking operations over HTTP."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Type

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from . import services
from .catalog import list_available_flights, summarize_capacity
from .cascade import CascadeResult, FlightStatusChange
from .config import configure_logging, load_settings
from .database import init_db_from_settings, session_scope
from .deletion import DeletionSummary
from .errors import (
    BookingError,
    InsufficientInventoryError,
    IntegrityError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .inventory import SeatInventory
from .models import AircraftStatus, FlightStatus

ERROR_STATUS: Dict[Type[BookingError], int] = {
    ValidationError: 400,
    PermissionDeniedError: 403,
    NotFoundError: 404,
    InsufficientInventoryError: 409,
    InvalidStateError: 409,
    IntegrityError: 500,
}


class BookingRequest(BaseModel):
    customer_id: int
    flight_id: int
    seat_ids: List[int]
    payment_id: Optional[int] = None
    discount_percent: float = Field(default=0.0)


class ConfirmRequest(BaseModel):
    payment_id: int


class ModifyRequest(BaseModel):
    seat_ids: List[int]


class AircraftStatusRequest(BaseModel):
    status: AircraftStatus
    now: Optional[datetime] = None


class FlightStatusRequest(BaseModel):
    status: FlightStatus


def _status_for(error: BookingError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


def _reservation_payload(view: services.ReservationView) -> dict:
    return {
        "id": view.id,
        "status": view.status.value,
        "total_price": f"{view.total_price:.2f}",
        "customer_id": view.customer_id,
        "flight_id": view.flight_id,
        "payment_id": view.payment_id,
        "booked_at": view.booked_at.isoformat(),
        "seat_ids": view.seat_ids,
        "seat_numbers": view.seat_numbers,
        "ticket_numbers": view.ticket_numbers,
    }


def _change_payload(change: FlightStatusChange) -> dict:
    return {
        "flight_id": change.flight_id,
        "flight_number": change.flight_number,
        "old_status": change.old_status.value,
        "new_status": change.new_status.value,
    }


def _cascade_payload(result: CascadeResult) -> dict:
    return {
        "aircraft_id": result.aircraft_id,
        "old_status": result.old_status.value,
        "new_status": result.new_status.value,
        "changes": [_change_payload(change) for change in result.changes],
    }


def _summary_payload(summary: DeletionSummary) -> dict:
    return summary.as_dict()


def create_app(session_factory: Optional[sessionmaker[Session]] = None) -> FastAPI:
    if session_factory is None:  # pragma: no cover - production wiring
        settings = load_settings()
        configure_logging(settings.log_level)
        session_factory = init_db_from_settings(settings)

    app = FastAPI(title="Airline Booking Engine")

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.code, "detail": str(exc)},
        )

    def _respond(result: services.OperationResult, render, status_code: int = 200):
        if not result.success:
            raise result.error
        return JSONResponse(status_code=status_code, content=render(result.value))

    @app.get("/flights")
    def flights(available_only: bool = False):
        with session_scope(session_factory) as session:
            if available_only:
                available_ids = {flight.id for flight in list_available_flights(session)}
                return [row for row in summarize_capacity(session) if row["id"] in available_ids]
            return summarize_capacity(session)

    @app.get("/flights/{flight_id}/seats")
    def free_seats(flight_id: int):
        with session_scope(session_factory) as session:
            return [
                {"id": seat.id, "seat_number": seat.seat_number, "seat_class": seat.seat_class.value}
                for seat in SeatInventory(session).available_seats(flight_id)
            ]

    @app.post("/reservations")
    def book(payload: BookingRequest):
        result = services.book_seats(
            session_factory,
            customer_id=payload.customer_id,
            flight_id=payload.flight_id,
            seat_ids=payload.seat_ids,
            payment_id=payload.payment_id,
            discount_percent=payload.discount_percent,
        )
        return _respond(result, _reservation_payload, status_code=201)

    @app.post("/reservations/{reservation_id}/confirm")
    def confirm(reservation_id: int, payload: ConfirmRequest):
        result = services.confirm_reservation(
            session_factory, reservation_id=reservation_id, payment_id=payload.payment_id
        )
        return _respond(result, _reservation_payload)

    @app.post("/reservations/{reservation_id}/cancel")
    def cancel(reservation_id: int):
        result = services.cancel_reservation(session_factory, reservation_id=reservation_id)
        return _respond(result, _reservation_payload)

    @app.post("/reservations/{reservation_id}/modify")
    def modify(reservation_id: int, payload: ModifyRequest):
        result = services.modify_reservation(
            session_factory, reservation_id=reservation_id, seat_ids=payload.seat_ids
        )
        return _respond(result, _reservation_payload)

    @app.post("/reservations/{reservation_id}/complete")
    def complete(reservation_id: int):
        result = services.complete_reservation(session_factory, reservation_id=reservation_id)
        return _respond(result, _reservation_payload)

    @app.put("/aircraft/{aircraft_id}/status")
    def aircraft_status(aircraft_id: int, payload: AircraftStatusRequest):
        result = services.update_aircraft_status(
            session_factory, aircraft_id=aircraft_id, status=payload.status, now=payload.now
        )
        return _respond(result, _cascade_payload)

    @app.put("/flights/{flight_id}/status")
    def flight_status(flight_id: int, payload: FlightStatusRequest):
        result = services.update_flight_status(session_factory, flight_id=flight_id, status=payload.status)
        return _respond(result, _change_payload)

    @app.post("/flights/{flight_id}/cancel")
    def cancel_flight(flight_id: int):
        result = services.cancel_flight(session_factory, flight_id=flight_id)
        return _respond(result, _change_payload)

    @app.delete("/flights/{flight_id}")
    def remove_flight(flight_id: int):
        result = services.delete_flight(session_factory, flight_id=flight_id)
        return _respond(result, _summary_payload)

    @app.delete("/aircraft/{aircraft_id}")
    def remove_aircraft(aircraft_id: int):
        result = services.delete_aircraft(session_factory, aircraft_id=aircraft_id)
        return _respond(result, _summary_payload)

    @app.delete("/routes/{route_id}")
    def remove_route(route_id: int):
        result = services.delete_route(session_factory, route_id=route_id)
        return _respond(result, _summary_payload)

    return app
