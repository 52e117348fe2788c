from sqlalchemy import func, select

from airbook.accounts import authenticate
from airbook.dataset import SAMPLE_PASSWORD, generate_sample_data
from airbook.models import Airplane, Flight, Ticket


def test_generate_sample_data_never_oversells(session_factory):
    summary = generate_sample_data(session_factory, flights=6, customers=5, tickets=80)

    assert summary["flights"] == 6
    assert summary["customers"] == 5
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(Ticket)) == summary["tickets"]
        rows = session.execute(
            select(Airplane.seat_count, func.count(Ticket.id))
            .select_from(Flight)
            .join(Flight.airplane)
            .outerjoin(
                Ticket,
                (Ticket.airline_name == Flight.airline_name)
                & (Ticket.flight_number == Flight.flight_number)
                & (Ticket.departure_time == Flight.departure_time),
            )
            .group_by(Flight.airline_name, Flight.flight_number, Flight.departure_time, Airplane.seat_count)
        ).all()
    assert len(rows) == 6
    assert all(booked <= seats for seats, booked in rows)


def test_sample_accounts_can_log_in(session_factory):
    generate_sample_data(session_factory, flights=1, customers=2, tickets=0)

    with session_factory() as session:
        assert authenticate(session, "test1@example.com", SAMPLE_PASSWORD).role == "customer"
        assert authenticate(session, "jetblue_admin", SAMPLE_PASSWORD).airline == "Jet Blue"
