from __future__ import annotations

import itertools
from datetime import date, timedelta
from decimal import Decimal

import pytest

from airbook.accounts import hash_password
from airbook.database import create_session_factory
from airbook.models import (
    Airline,
    AirlineStaff,
    Airplane,
    Airport,
    Base,
    Customer,
    Flight,
    StaffPhone,
    utcnow,
)

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)
FUTURE = utcnow().replace(microsecond=0) + timedelta(days=30)
CUSTOMERS = [f"customer{i}@example.com" for i in range(12)]


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+pysqlite:///{tmp_path / 'airbook-test.db'}")
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


def _customer(email: str, index: int) -> Customer:
    return Customer(
        email=email,
        password_hash=PASSWORD_HASH,
        name=f"Customer {index}",
        phone=f"+1-555-{index:04d}",
        building_number="1",
        street="Main Street",
        city="Springfield",
        state="IL",
        passport_number=f"P{index:07d}",
        passport_country="United States",
        passport_expiry=date.today() + timedelta(days=3650),
        date_of_birth=date(1990, 1, 1),
    )


def _staff(username: str, airline: str) -> AirlineStaff:
    return AirlineStaff(
        username=username,
        password_hash=PASSWORD_HASH,
        email=f"{username}@example.com",
        first_name="Staff",
        last_name=airline,
        date_of_birth=date(1980, 5, 5),
        airline_name=airline,
        phones=[StaffPhone(phone="+1 555 0100")],
    )


@pytest.fixture
def reference_data(session_factory):
    """Two airlines with airplanes, three airports, one staff member per airline, customers."""

    with session_factory() as session:
        session.add_all(
            [
                Airline(name="Jet Blue"),
                Airline(name="Delta"),
                Airport(code="JFK", city="New York", country="United States"),
                Airport(code="PVG", city="Shanghai", country="China"),
                Airport(code="LAX", city="Los Angeles", country="United States"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Airplane(airline_name="Jet Blue", id=1, seat_count=2, manufacturer="Airbus", age=3),
                Airplane(airline_name="Jet Blue", id=2, seat_count=5, manufacturer="Boeing", age=10),
                Airplane(airline_name="Delta", id=1, seat_count=3, manufacturer="Embraer", age=1),
                _staff("jb_admin", "Jet Blue"),
                _staff("delta_admin", "Delta"),
            ]
        )
        session.add_all([_customer(email, i) for i, email in enumerate(CUSTOMERS)])
        session.commit()


@pytest.fixture
def make_flight(session_factory, reference_data):
    numbers = itertools.count(100)

    def _make(
        *,
        airline: str = "Jet Blue",
        airplane_id: int = 1,
        departure=None,
        number=None,
        origin: str = "JFK",
        destination: str = "PVG",
        price: str = "300.00",
    ):
        departure = departure or FUTURE
        with session_factory() as session:
            flight = Flight(
                airline_name=airline,
                flight_number=number or f"F{next(numbers)}",
                departure_time=departure,
                arrival_time=departure + timedelta(hours=14),
                base_price=Decimal(price),
                status="on-time",
                departure_airport=origin,
                arrival_airport=destination,
                airplane_id=airplane_id,
            )
            session.add(flight)
            session.commit()
            return flight.key

    return _make
