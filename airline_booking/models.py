"""SQLAlchemy models for the airline booking engine."""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .accounts import (
    AdminProfile,
    AgentProfile,
    CustomerProfile,
    MembershipStatus,
    PermissionSet,
    RoleProfile,
    UserRole,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive ``DateTime`` columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class FlightStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    DELAYED = "DELAYED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SeatClass(str, enum.Enum):
    ECONOMY = "ECONOMY"
    BUSINESS = "BUSINESS"
    FIRST = "FIRST"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class AircraftStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    INACTIVE = "INACTIVE"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    PAYPAL = "PAYPAL"
    BANK_TRANSFER = "BANK_TRANSFER"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


ACTIVE_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
        UniqueConstraint("email", name="uq_user_email"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole, name="user_role"), nullable=False)
    # customer payload
    first_name: Mapped[Optional[str]] = mapped_column(String(50))
    last_name: Mapped[Optional[str]] = mapped_column(String(50))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    membership: Mapped[Optional[MembershipStatus]] = mapped_column(
        Enum(MembershipStatus, name="membership_status")
    )
    # agent payload
    employee_id: Mapped[Optional[str]] = mapped_column(String(20))
    # admin payload
    permissions: Mapped[Optional[str]] = mapped_column(String(200))

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="customer")

    @property
    def profile(self) -> RoleProfile:
        if self.role is UserRole.CUSTOMER:
            return CustomerProfile(
                first_name=self.first_name or self.username,
                last_name=self.last_name or "",
                phone=self.phone,
                membership=self.membership or MembershipStatus.REGULAR,
            )
        if self.role is UserRole.FLIGHT_AGENT:
            return AgentProfile(employee_id=self.employee_id or "")
        return AdminProfile(permissions=PermissionSet.parse(self.permissions))

    @property
    def display_name(self) -> str:
        if self.role is UserRole.CUSTOMER:
            return self.profile.full_name
        return self.username


class Aircraft(Base):
    __tablename__ = "aircraft"
    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_aircraft_seats_positive"),
        CheckConstraint("first_rows >= 0 AND business_rows >= 0", name="ck_aircraft_cabin_rows"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    model: Mapped[str] = mapped_column(String(40), nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(40), nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_configuration: Mapped[str] = mapped_column(String(20), default="3-3", nullable=False)
    first_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    business_rows: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[AircraftStatus] = mapped_column(
        Enum(AircraftStatus, name="aircraft_status"), default=AircraftStatus.ACTIVE, nullable=False
    )

    flights: Mapped[List["Flight"]] = relationship(back_populates="aircraft")


class Route(Base):
    __tablename__ = "routes"
    __table_args__ = (UniqueConstraint("origin", "destination", name="uq_route_endpoints"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    origin: Mapped[str] = mapped_column(String(3), nullable=False)
    destination: Mapped[str] = mapped_column(String(3), nullable=False)
    distance_km: Mapped[Optional[float]] = mapped_column(Float)
    estimated_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    flights: Mapped[List["Flight"]] = relationship(back_populates="route")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        UniqueConstraint("flight_number", name="uq_flight_number"),
        CheckConstraint("total_seats > 0", name="ck_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="ck_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_available_within_total"),
        CheckConstraint("base_price >= 0", name="ck_base_price_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_number: Mapped[str] = mapped_column(String(8), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    arrival_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[FlightStatus] = mapped_column(
        Enum(FlightStatus, name="flight_status"), default=FlightStatus.SCHEDULED, nullable=False
    )
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    aircraft_id: Mapped[int] = mapped_column(ForeignKey("aircraft.id"), nullable=False)
    route_id: Mapped[int] = mapped_column(ForeignKey("routes.id"), nullable=False)

    aircraft: Mapped[Aircraft] = relationship(back_populates="flights")
    route: Mapped[Route] = relationship(back_populates="flights")
    seats: Mapped[List["Seat"]] = relationship(back_populates="flight", order_by="Seat.id")
    reservations: Mapped[List["Reservation"]] = relationship(back_populates="flight")


class Seat(Base):
    __tablename__ = "seats"
    __table_args__ = (UniqueConstraint("flight_id", "seat_number", name="uq_flight_seat"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id"), nullable=False, index=True)
    seat_number: Mapped[str] = mapped_column(String(4), nullable=False)
    seat_class: Mapped[SeatClass] = mapped_column(
        Enum(SeatClass, name="seat_class"), default=SeatClass.ECONOMY, nullable=False
    )
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    flight: Mapped[Flight] = relationship(back_populates="seats")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("transaction_ref", name="uq_payment_transaction"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method"), default=PaymentMethod.CREDIT_CARD, nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status"), default=PaymentStatus.COMPLETED, nullable=False
    )
    transaction_ref: Mapped[str] = mapped_column(String(30), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    reservations: Mapped[List["Reservation"]] = relationship(back_populates="payment")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (CheckConstraint("total_price >= 0", name="ck_total_price_non_negative"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    booked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"),
        default=ReservationStatus.PENDING,
        nullable=False,
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id"), nullable=False, index=True)
    payment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("payments.id"))

    customer: Mapped[User] = relationship(back_populates="reservations")
    flight: Mapped[Flight] = relationship(back_populates="reservations")
    payment: Mapped[Optional[Payment]] = relationship(back_populates="reservations")
    tickets: Mapped[List["Ticket"]] = relationship(
        back_populates="reservation",
        order_by="Ticket.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    seats: AssociationProxy[List[Seat]] = association_proxy("tickets", "seat")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RESERVATION_STATUSES


class Ticket(Base):
    """One issued ticket per seat per reservation; orders the reservation's seats."""

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("ticket_number", name="uq_ticket_number"),
        UniqueConstraint("reservation_id", "seat_id", name="uq_ticket_reservation_seat"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(20), nullable=False)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("reservations.id"), nullable=False, index=True)
    seat_id: Mapped[int] = mapped_column(ForeignKey("seats.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    passenger_name: Mapped[str] = mapped_column(String(120), nullable=False)
    barcode: Mapped[str] = mapped_column(String(40), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    reservation: Mapped[Reservation] = relationship(back_populates="tickets")
    seat: Mapped[Seat] = relationship()
