"""Airline ticket reservation service."""
from typing import Any

from .accounts import Principal, authenticate, register_customer, register_staff
from .database import create_session_factory, init_db, session_scope
from .dataset import generate_sample_data
from .errors import (
    FlightNotFoundError,
    ReservationError,
    SoldOutError,
    StoreError,
    ValidationError,
)
from .models import FlightKey
from .payment import PaymentDetails
from .services import (
    customer_tickets,
    purchase_ticket,
    search_flights,
    seats_available,
    submit_review,
)


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "FlightKey",
    "FlightNotFoundError",
    "PaymentDetails",
    "Principal",
    "ReservationError",
    "SoldOutError",
    "StoreError",
    "ValidationError",
    "authenticate",
    "create_app",
    "create_session_factory",
    "customer_tickets",
    "generate_sample_data",
    "init_db",
    "purchase_ticket",
    "register_customer",
    "register_staff",
    "search_flights",
    "seats_available",
    "session_scope",
    "submit_review",
]
