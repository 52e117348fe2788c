"""Airline staff operations. Every call is scoped to the staff member's airline."""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import (
    AuthorizationError,
    ConflictError,
    FlightNotFoundError,
    NotFoundError,
    ValidationError,
)
from .models import (
    FLIGHT_STATUSES,
    Airplane,
    AirlineStaff,
    Airport,
    Flight,
    FlightKey,
    Ticket,
    as_naive_utc,
    key_filter,
    utcnow,
)
from .services import day_bounds

logger = logging.getLogger(__name__)


def get_staff(session: Session, username: str) -> AirlineStaff:
    staff = session.get(AirlineStaff, username)
    if staff is None:
        logger.warning("User %r is not airline staff", username)
        raise AuthorizationError("You must be airline staff")
    return staff


def _owned_flight(session: Session, username: str, key: FlightKey) -> Flight:
    staff = get_staff(session, username)
    if staff.airline_name != key.airline:
        raise AuthorizationError("Not authorized for this flight")
    flight = session.scalars(select(Flight).where(*key_filter(Flight, key))).one_or_none()
    if flight is None:
        raise FlightNotFoundError()
    return flight


def _airplane_payload(airplane: Airplane) -> dict:
    return {
        "airplaneId": airplane.id,
        "airlineName": airplane.airline_name,
        "numberOfSeats": airplane.seat_count,
        "manufacturer": airplane.manufacturer,
        "age": airplane.age,
    }


def _passenger_payload(ticket: Ticket) -> dict:
    return {
        "ticketId": ticket.public_id,
        "customerEmail": ticket.customer_email,
        "purchaseDate": ticket.purchased_at.isoformat(),
        "cardType": ticket.card_type,
    }


def list_staff_flights(
    session: Session,
    username: str,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    source: Optional[str] = None,
    destination: Optional[str] = None,
) -> List[dict]:
    """Flights of the staff member's airline with passenger counts."""

    staff = get_staff(session, username)
    booked = (
        select(
            Ticket.airline_name,
            Ticket.flight_number,
            Ticket.departure_time,
            func.count(Ticket.id).label("passengers"),
        )
        .group_by(Ticket.airline_name, Ticket.flight_number, Ticket.departure_time)
        .subquery()
    )
    stmt = (
        select(Flight, Airplane.seat_count, func.coalesce(booked.c.passengers, 0))
        .join(Flight.airplane)
        .outerjoin(
            booked,
            (booked.c.airline_name == Flight.airline_name)
            & (booked.c.flight_number == Flight.flight_number)
            & (booked.c.departure_time == Flight.departure_time),
        )
        .where(Flight.airline_name == staff.airline_name)
    )
    lower, upper = day_bounds(date_from, date_to)
    if lower:
        stmt = stmt.where(Flight.departure_time >= lower)
    if upper:
        stmt = stmt.where(Flight.departure_time < upper)
    if source:
        stmt = stmt.where(Flight.departure_airport == source.strip().upper())
    if destination:
        stmt = stmt.where(Flight.arrival_airport == destination.strip().upper())

    rows = session.execute(stmt.order_by(Flight.departure_time)).all()
    return [
        {
            "flightKey": flight.key.as_dict(),
            "flightNumber": flight.flight_number,
            "depAirport": flight.departure_airport,
            "arrAirport": flight.arrival_airport,
            "depDatetime": flight.departure_time.isoformat(),
            "arrDatetime": flight.arrival_time.isoformat(),
            "basePrice": float(flight.base_price),
            "status": flight.status,
            "airplaneId": flight.airplane_id,
            "passengers": passengers,
            "totalSeats": seat_count,
        }
        for flight, seat_count, passengers in rows
    ]


def flight_passengers(session: Session, username: str, key: FlightKey) -> List[dict]:
    _owned_flight(session, username, key)
    tickets = session.scalars(select(Ticket).where(*key_filter(Ticket, key)).order_by(Ticket.id))
    return [_passenger_payload(ticket) for ticket in tickets]


def _price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Base price must be a number", field="basePrice") from exc
    if not price.is_finite() or price < 0:
        raise ValidationError("Base price must not be negative", field="basePrice")
    return price.quantize(Decimal("0.01"))


def _status(value: str) -> str:
    status = (value or "").strip().lower()
    if status not in FLIGHT_STATUSES:
        raise ValidationError(
            f"Status must be one of {', '.join(FLIGHT_STATUSES)}", field="status"
        )
    return status


def create_flight(
    session: Session,
    username: str,
    *,
    flight_number: str,
    departure_time: Optional[datetime],
    arrival_time: Optional[datetime],
    base_price,
    departure_airport: str,
    arrival_airport: str,
    airplane_id: Optional[int],
    status: str = "on-time",
    now: Optional[datetime] = None,
) -> Flight:
    """Create a flight for the staff member's airline."""

    staff = get_staff(session, username)
    flight_number = (flight_number or "").strip()
    if not flight_number:
        raise ValidationError("Flight number is required", field="flightNumber")
    if departure_time is None:
        raise ValidationError("Departure date and time is required", field="depDatetime")
    if arrival_time is None:
        raise ValidationError("Arrival date and time is required", field="arrDatetime")
    if airplane_id is None:
        raise ValidationError("Airplane ID is required", field="airplaneId")
    departure_time = as_naive_utc(departure_time)
    arrival_time = as_naive_utc(arrival_time)
    if arrival_time <= departure_time:
        raise ValidationError(
            "Arrival date and time must be after departure date and time", field="arrDatetime"
        )
    if departure_time < (now or utcnow()):
        raise ValidationError(
            "Cannot create flights in the past. Departure must be in the future",
            field="depDatetime",
        )
    price = _price(base_price)
    status = _status(status)

    codes = {}
    for field, code in (("depAirport", departure_airport), ("arrAirport", arrival_airport)):
        code = (code or "").strip().upper()
        if session.get(Airport, code) is None:
            raise ValidationError(f"Unknown airport '{code}'", field=field)
        codes[field] = code

    if session.get(Airplane, (staff.airline_name, airplane_id)) is None:
        raise NotFoundError(
            f"Airplane with ID {airplane_id} not found for your airline", field="airplaneId"
        )

    key = FlightKey(staff.airline_name, flight_number, departure_time)
    if session.scalars(select(Flight.flight_number).where(*key_filter(Flight, key))).first():
        raise ConflictError(
            f"A flight {flight_number} of {staff.airline_name} departing at "
            f"{departure_time.isoformat()} already exists"
        )

    flight = Flight(
        airline_name=staff.airline_name,
        flight_number=flight_number,
        departure_time=departure_time,
        arrival_time=arrival_time,
        base_price=price,
        status=status,
        departure_airport=codes["depAirport"],
        arrival_airport=codes["arrAirport"],
        airplane_id=airplane_id,
    )
    session.add(flight)
    session.flush()
    logger.info("Staff %s created flight %s %s at %s", username, key.airline, flight_number, departure_time)
    return flight


def change_flight_status(
    session: Session,
    username: str,
    key: FlightKey,
    status: str,
    *,
    now: Optional[datetime] = None,
) -> Flight:
    status = _status(status)
    flight = _owned_flight(session, username, key)
    if flight.departure_time < (now or utcnow()):
        raise ValidationError(
            "Cannot change status for flights whose departure time has passed", field="status"
        )
    flight.status = status
    session.flush()
    logger.info("Staff %s set %s %s to %s", username, key.airline, key.flight_number, status)
    return flight


def list_airplanes(session: Session, username: str) -> List[dict]:
    staff = get_staff(session, username)
    airplanes = session.scalars(
        select(Airplane).where(Airplane.airline_name == staff.airline_name).order_by(Airplane.id)
    )
    return [_airplane_payload(airplane) for airplane in airplanes]


def add_airplane(
    session: Session,
    username: str,
    *,
    airplane_id: int,
    seat_count: int,
    manufacturer: str,
    age: int = 0,
) -> dict:
    staff = get_staff(session, username)
    if airplane_id is None or airplane_id < 0:
        raise ValidationError("Airplane ID must be a non-negative number", field="airplaneId")
    if seat_count is None or seat_count <= 0:
        raise ValidationError("Number of seats must be positive", field="numberOfSeats")
    manufacturer = (manufacturer or "").strip()
    if not manufacturer:
        raise ValidationError("Manufacturer is required", field="manufacturer")
    if age is None or age < 0:
        raise ValidationError("Age must not be negative", field="age")
    if session.get(Airplane, (staff.airline_name, airplane_id)) is not None:
        raise ConflictError(f"Airplane {airplane_id} already exists for {staff.airline_name}")

    airplane = Airplane(
        airline_name=staff.airline_name,
        id=airplane_id,
        seat_count=seat_count,
        manufacturer=manufacturer,
        age=age,
    )
    session.add(airplane)
    session.flush()
    logger.info("Staff %s added airplane %s (%d seats)", username, airplane_id, seat_count)
    return _airplane_payload(airplane)


__all__ = [
    "add_airplane",
    "change_flight_status",
    "create_flight",
    "flight_passengers",
    "get_staff",
    "list_airplanes",
    "list_staff_flights",
]
