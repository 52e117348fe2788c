"""SQLAlchemy models for the reservation store."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

FLIGHT_STATUSES = ("on-time", "delayed")
CARD_TYPES = ("credit", "debit")


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation used by every DateTime column."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class FlightKey:
    """Natural key of a flight: airline, flight number and departure time."""

    airline: str
    flight_number: str
    departure: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "departure", as_naive_utc(self.departure))

    def as_dict(self) -> dict:
        return {
            "airline": self.airline,
            "flightNumber": self.flight_number,
            "departure": self.departure.isoformat(),
        }


class Base(DeclarativeBase):
    pass


def key_filter(entity, key: FlightKey) -> tuple:
    """WHERE clauses matching ``key`` on any entity carrying the flight key columns."""

    return (
        entity.airline_name == key.airline,
        entity.flight_number == key.flight_number,
        entity.departure_time == key.departure,
    )


class Airline(Base):
    __tablename__ = "airlines"

    name: Mapped[str] = mapped_column(String(60), primary_key=True)

    airplanes: Mapped[List["Airplane"]] = relationship(back_populates="airline")
    staff: Mapped[List["AirlineStaff"]] = relationship(back_populates="airline")


class Airport(Base):
    __tablename__ = "airports"

    code: Mapped[str] = mapped_column(String(3), primary_key=True)
    city: Mapped[str] = mapped_column(String(60), nullable=False)
    country: Mapped[str] = mapped_column(String(60), nullable=False)


class Airplane(Base):
    __tablename__ = "airplanes"
    __table_args__ = (
        CheckConstraint("seat_count > 0", name="ck_seat_count_positive"),
        CheckConstraint("age >= 0", name="ck_age_non_negative"),
    )

    airline_name: Mapped[str] = mapped_column(ForeignKey("airlines.name"), primary_key=True)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    seat_count: Mapped[int] = mapped_column(Integer, nullable=False)
    manufacturer: Mapped[str] = mapped_column(String(60), nullable=False)
    age: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    airline: Mapped[Airline] = relationship(back_populates="airplanes")
    flights: Mapped[List["Flight"]] = relationship(back_populates="airplane")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        ForeignKeyConstraint(
            ["airline_name", "airplane_id"],
            ["airplanes.airline_name", "airplanes.id"],
            name="fk_flight_airplane",
        ),
        CheckConstraint("arrival_time > departure_time", name="ck_arrival_after_departure"),
        CheckConstraint("base_price >= 0", name="ck_base_price_non_negative"),
    )

    airline_name: Mapped[str] = mapped_column(ForeignKey("airlines.name"), primary_key=True)
    flight_number: Mapped[str] = mapped_column(String(10), primary_key=True)
    departure_time: Mapped[datetime] = mapped_column(DateTime, primary_key=True)
    arrival_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*FLIGHT_STATUSES, name="flight_status"), default="on-time", nullable=False
    )
    departure_airport: Mapped[str] = mapped_column(ForeignKey("airports.code"), nullable=False)
    arrival_airport: Mapped[str] = mapped_column(ForeignKey("airports.code"), nullable=False)
    airplane_id: Mapped[int] = mapped_column(Integer, nullable=False)

    airplane: Mapped[Airplane] = relationship(back_populates="flights")
    origin: Mapped[Airport] = relationship(foreign_keys=[departure_airport])
    destination: Mapped[Airport] = relationship(foreign_keys=[arrival_airport])

    @property
    def key(self) -> FlightKey:
        return FlightKey(self.airline_name, self.flight_number, self.departure_time)


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("phone", name="uq_customer_phone"),)

    email: Mapped[str] = mapped_column(String(120), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    building_number: Mapped[str] = mapped_column(String(20), nullable=False)
    street: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str] = mapped_column(String(60), nullable=False)
    state: Mapped[str] = mapped_column(String(60), nullable=False)
    passport_number: Mapped[str] = mapped_column(String(30), nullable=False)
    passport_country: Mapped[str] = mapped_column(String(60), nullable=False)
    passport_expiry: Mapped[date] = mapped_column(Date, nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)

    tickets: Mapped[List["Ticket"]] = relationship(back_populates="customer")


class AirlineStaff(Base):
    __tablename__ = "airline_staff"
    __table_args__ = (UniqueConstraint("email", name="uq_staff_email"),)

    username: Mapped[str] = mapped_column(String(60), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    first_name: Mapped[str] = mapped_column(String(60), nullable=False)
    last_name: Mapped[str] = mapped_column(String(60), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    airline_name: Mapped[str] = mapped_column(ForeignKey("airlines.name"), nullable=False)

    airline: Mapped[Airline] = relationship(back_populates="staff")
    phones: Mapped[List["StaffPhone"]] = relationship(
        back_populates="staff", cascade="all, delete-orphan"
    )


class StaffPhone(Base):
    __tablename__ = "staff_phones"

    username: Mapped[str] = mapped_column(
        ForeignKey("airline_staff.username", ondelete="CASCADE"), primary_key=True
    )
    phone: Mapped[str] = mapped_column(String(30), primary_key=True)

    staff: Mapped[AirlineStaff] = relationship(back_populates="phones")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        ForeignKeyConstraint(
            ["airline_name", "flight_number", "departure_time"],
            ["flights.airline_name", "flights.flight_number", "flights.departure_time"],
            name="fk_ticket_flight",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_email: Mapped[str] = mapped_column(ForeignKey("customers.email"), nullable=False)
    airline_name: Mapped[str] = mapped_column(String(60), nullable=False)
    flight_number: Mapped[str] = mapped_column(String(10), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    card_type: Mapped[str] = mapped_column(Enum(*CARD_TYPES, name="card_type"), nullable=False)
    card_number: Mapped[str] = mapped_column(String(32), nullable=False)
    name_on_card: Mapped[str] = mapped_column(String(120), nullable=False)
    card_expiry: Mapped[str] = mapped_column(String(5), nullable=False)

    customer: Mapped[Customer] = relationship(back_populates="tickets")
    flight: Mapped[Flight] = relationship()

    @property
    def public_id(self) -> str:
        return f"T{self.id}"


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        ForeignKeyConstraint(
            ["airline_name", "flight_number", "departure_time"],
            ["flights.airline_name", "flights.flight_number", "flights.departure_time"],
            name="fk_review_flight",
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_rating_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_email: Mapped[str] = mapped_column(ForeignKey("customers.email"), nullable=False)
    airline_name: Mapped[str] = mapped_column(String(60), nullable=False)
    flight_number: Mapped[str] = mapped_column(String(10), nullable=False)
    departure_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    flight: Mapped[Flight] = relationship()
