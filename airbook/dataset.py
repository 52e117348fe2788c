"""Utilities to populate the database with sample data for tests and demos."""
from __future__ import annotations

import logging
import random
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Sequence

from sqlalchemy.orm import Session, sessionmaker

from .accounts import hash_password
from .errors import SoldOutError
from .models import Airline, AirlineStaff, Airplane, Airport, Customer, Flight, StaffPhone, utcnow
from .payment import PaymentDetails
from .services import purchase_ticket

logger = logging.getLogger(__name__)

AIRPORTS: Sequence[tuple] = (
    ("ATL", "Atlanta", "United States"),
    ("PEK", "Beijing", "China"),
    ("DXB", "Dubai", "United Arab Emirates"),
    ("LAX", "Los Angeles", "United States"),
    ("HND", "Tokyo", "Japan"),
    ("ORD", "Chicago", "United States"),
    ("LHR", "London", "United Kingdom"),
    ("HKG", "Hong Kong", "China"),
    ("PVG", "Shanghai", "China"),
    ("CDG", "Paris", "France"),
    ("JFK", "New York", "United States"),
)
AIRLINES = ("Jet Blue", "China Eastern", "Emirates")
MANUFACTURERS = ("Airbus", "Boeing", "Embraer")
FIRST_NAMES = ("Ava", "Noah", "Liam", "Mia", "Lucas", "Emma", "Ethan", "Isabella")
LAST_NAMES = ("Johnson", "Williams", "Smith", "Brown", "Garcia", "Lee")
SAMPLE_PASSWORD = "password123"


def _random_datetime(days_from_now: int) -> datetime:
    start = utcnow() + timedelta(days=days_from_now)
    hour = random.randint(5, 22)
    minute = random.choice((0, 15, 30, 45))
    return start.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _sample_card() -> PaymentDetails:
    digits = "".join(random.choice("0123456789") for _ in range(16))
    return PaymentDetails(
        card_type=random.choice(("credit", "debit")),
        card_number=digits,
        name_on_card="Sample Traveler",
        expiration="12/99",
    )


def _populate_reference_data(session: Session, *, flights: int, customers: int) -> None:
    # bcrypt is slow on purpose; every sample account shares one hash.
    password_hash = hash_password(SAMPLE_PASSWORD)

    for code, city, country in AIRPORTS:
        session.add(Airport(code=code, city=city, country=country))
    for index, name in enumerate(AIRLINES):
        session.add(Airline(name=name))
        slug = name.lower().replace(" ", "")
        session.add(
            AirlineStaff(
                username=f"{slug}_admin",
                password_hash=password_hash,
                email=f"admin@{slug}.example.com",
                first_name="Admin",
                last_name=name,
                date_of_birth=date(1980, 1, 1),
                airline_name=name,
                phones=[StaffPhone(phone=f"+1-555-90{index:02d}")],
            )
        )
        for airplane_id in range(1, 4):
            session.add(
                Airplane(
                    airline_name=name,
                    id=airplane_id,
                    seat_count=random.choice((4, 8, 12, 20)),
                    manufacturer=random.choice(MANUFACTURERS),
                    age=random.randint(0, 25),
                )
            )
    session.flush()

    for index in range(flights):
        origin, destination = random.sample([code for code, _, _ in AIRPORTS], 2)
        departure = _random_datetime(random.randint(1, 30))
        session.add(
            Flight(
                airline_name=random.choice(AIRLINES),
                flight_number=f"AB{1000 + index}",
                departure_time=departure,
                arrival_time=departure + timedelta(hours=random.randint(2, 12)),
                base_price=Decimal(random.choice((120, 180, 220, 450))),
                status=random.choice(("on-time", "on-time", "delayed")),
                departure_airport=origin,
                arrival_airport=destination,
                airplane_id=random.randint(1, 3),
            )
        )
    for index in range(customers):
        session.add(
            Customer(
                email=f"test{index}@example.com",
                password_hash=password_hash,
                name=f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
                phone=f"+1-555-{index:04d}",
                building_number=str(random.randint(1, 999)),
                street="Main Street",
                city="Springfield",
                state="IL",
                passport_number=f"P{index:07d}",
                passport_country="United States",
                passport_expiry=date.today() + timedelta(days=3650),
                date_of_birth=date(1990, 1, 1) + timedelta(days=index),
            )
        )


def generate_sample_data(
    session_factory: sessionmaker[Session],
    *,
    flights: int = 25,
    customers: int = 50,
    tickets: int = 150,
) -> Dict[str, int]:
    """Populate the database with deterministic pseudo-random data.

    Tickets go through :func:`purchase_ticket`, so sold-out flights simply
    reject further purchases and the returned count may be lower than asked.
    """

    random.seed(42)
    with session_factory() as session:
        _populate_reference_data(session, flights=flights, customers=customers)
        session.commit()
        flight_keys = [flight.key for flight in session.query(Flight).all()]

    if not flight_keys or not customers:
        return {"flights": len(flight_keys), "customers": customers, "tickets": 0}

    issued = 0
    for _ in range(tickets):
        try:
            purchase_ticket(
                session_factory,
                customer_email=f"test{random.randrange(customers)}@example.com",
                flight_key=random.choice(flight_keys),
                payment=_sample_card(),
            )
        except SoldOutError:
            continue
        issued += 1
    logger.info("Sample data: %d flights, %d customers, %d tickets", flights, customers, issued)
    return {"flights": flights, "customers": customers, "tickets": issued}


__all__ = ["SAMPLE_PASSWORD", "generate_sample_data"]
