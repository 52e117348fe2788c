from datetime import timedelta

import pytest

from airbook.errors import AuthorizationError, ConflictError, FlightNotFoundError, NotFoundError, ValidationError
from airbook.models import FlightKey, utcnow
from airbook.payment import PaymentDetails
from airbook.services import purchase_ticket
from airbook.staff import (
    add_airplane,
    change_flight_status,
    create_flight,
    flight_passengers,
    list_airplanes,
    list_staff_flights,
)

from conftest import CUSTOMERS, FUTURE


def flight_fields(**overrides):
    fields = dict(
        flight_number="B6 88",
        departure_time=FUTURE,
        arrival_time=FUTURE + timedelta(hours=6),
        base_price="199.999",
        departure_airport="jfk",
        arrival_airport="LAX",
        airplane_id=2,
    )
    fields.update(overrides)
    return fields


def test_create_flight_for_own_airline(session_factory, reference_data):
    with session_factory() as session:
        flight = create_flight(session, "jb_admin", **flight_fields())
        session.commit()
        key = flight.key

    assert key == FlightKey("Jet Blue", "B6 88", FUTURE)
    with session_factory() as session:
        flights = list_staff_flights(session, "jb_admin")
        assert flights[0]["basePrice"] == 200.0
        assert flights[0]["depAirport"] == "JFK"
        assert flights[0]["status"] == "on-time"
        assert flights[0]["totalSeats"] == 5
        assert flights[0]["passengers"] == 0
        assert list_staff_flights(session, "delta_admin") == []


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"flight_number": " "}, "flightNumber"),
        ({"arrival_time": FUTURE - timedelta(hours=1)}, "arrDatetime"),
        ({"departure_time": utcnow() - timedelta(days=1)}, "depDatetime"),
        ({"base_price": "-5"}, "basePrice"),
        ({"base_price": "cheap"}, "basePrice"),
        ({"departure_airport": "XXX"}, "depAirport"),
        ({"status": "cancelled"}, "status"),
    ],
)
def test_create_flight_validation(session_factory, reference_data, overrides, field):
    with session_factory() as session:
        with pytest.raises(ValidationError) as excinfo:
            create_flight(session, "jb_admin", **flight_fields(**overrides))

    assert excinfo.value.field == field


def test_create_flight_requires_own_airplane(session_factory, reference_data):
    with session_factory() as session:
        with pytest.raises(NotFoundError) as excinfo:
            create_flight(session, "delta_admin", **flight_fields(airplane_id=2))

    assert excinfo.value.field == "airplaneId"


def test_duplicate_flight_is_a_conflict(session_factory, reference_data):
    with session_factory() as session:
        create_flight(session, "jb_admin", **flight_fields())
        with pytest.raises(ConflictError) as excinfo:
            create_flight(session, "jb_admin", **flight_fields())

    assert excinfo.value.status_code == 409


def test_customers_are_not_staff(session_factory, reference_data):
    with session_factory() as session:
        with pytest.raises(AuthorizationError):
            list_airplanes(session, CUSTOMERS[0])


def test_passengers_and_counts(session_factory, make_flight):
    key = make_flight(airplane_id=2)
    for customer in CUSTOMERS[:3]:
        purchase_ticket(
            session_factory,
            customer_email=customer,
            flight_key=key,
            payment=PaymentDetails("debit", "5500000000000004", "Pax", "01/99"),
        )

    with session_factory() as session:
        passengers = flight_passengers(session, "jb_admin", key)
        flights = list_staff_flights(session, "jb_admin", source="jfk")

    assert [p["customerEmail"] for p in passengers] == CUSTOMERS[:3]
    assert all(p["ticketId"].startswith("T") for p in passengers)
    assert flights[0]["passengers"] == 3


def test_other_airline_cannot_see_passengers(session_factory, make_flight):
    key = make_flight()

    with session_factory() as session:
        with pytest.raises(AuthorizationError) as excinfo:
            flight_passengers(session, "delta_admin", key)

    assert excinfo.value.status_code == 403


def test_list_staff_flights_filters(session_factory, make_flight):
    first = make_flight(departure=FUTURE)
    make_flight(departure=FUTURE + timedelta(days=20), destination="LAX")

    with session_factory() as session:
        to_pvg = list_staff_flights(session, "jb_admin", destination="pvg")
        early = list_staff_flights(session, "jb_admin", date_to=(FUTURE + timedelta(days=5)).date())

    assert [f["flightKey"] for f in to_pvg] == [first.as_dict()]
    assert [f["flightKey"] for f in early] == [first.as_dict()]


def test_change_flight_status(session_factory, make_flight):
    key = make_flight()

    with session_factory() as session:
        flight = change_flight_status(session, "jb_admin", key, "Delayed")
        session.commit()
        assert flight.status == "delayed"


def test_change_status_of_departed_flight_is_rejected(session_factory, make_flight):
    key = make_flight(departure=utcnow().replace(microsecond=0) - timedelta(hours=2))

    with session_factory() as session:
        with pytest.raises(ValidationError) as excinfo:
            change_flight_status(session, "jb_admin", key, "delayed")

    assert excinfo.value.field == "status"


def test_change_status_unknown_flight(session_factory, reference_data):
    with session_factory() as session:
        with pytest.raises(FlightNotFoundError):
            change_flight_status(session, "jb_admin", FlightKey("Jet Blue", "NONE", FUTURE), "delayed")


def test_airplanes_are_scoped_to_airline(session_factory, reference_data):
    with session_factory() as session:
        added = add_airplane(session, "delta_admin", airplane_id=7, seat_count=180, manufacturer=" Airbus ", age=2)
        session.commit()

    assert added == {
        "airplaneId": 7,
        "airlineName": "Delta",
        "numberOfSeats": 180,
        "manufacturer": "Airbus",
        "age": 2,
    }
    with session_factory() as session:
        assert [a["airplaneId"] for a in list_airplanes(session, "delta_admin")] == [1, 7]
        assert [a["airplaneId"] for a in list_airplanes(session, "jb_admin")] == [1, 2]


def test_add_airplane_validation_and_conflict(session_factory, reference_data):
    with session_factory() as session:
        with pytest.raises(ValidationError) as excinfo:
            add_airplane(session, "jb_admin", airplane_id=9, seat_count=0, manufacturer="Boeing")
        assert excinfo.value.field == "numberOfSeats"

        with pytest.raises(ConflictError):
            add_airplane(session, "jb_admin", airplane_id=1, seat_count=10, manufacturer="Boeing")
