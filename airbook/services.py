"""Customer-facing business logic: search, seat availability, purchases and reviews."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased, sessionmaker

from .database import session_scope
from .errors import FlightNotFoundError, SoldOutError, StoreError, ValidationError
from .models import Airplane, Airport, Flight, FlightKey, Review, Ticket, key_filter, utcnow
from .payment import PaymentDetails, validate_payment

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MAX_COMMENT_LENGTH = 1000


@dataclass
class PurchaseResult:
    ticket_id: int
    flight_key: FlightKey
    customer_email: str

    @property
    def public_id(self) -> str:
        return f"T{self.ticket_id}"

    def as_dict(self) -> dict:
        return {
            "ticketId": self.public_id,
            "flightKey": self.flight_key.as_dict(),
            "customerIdentity": self.customer_email,
        }


@dataclass
class FlightListing:
    """A flight as shown in search results."""

    key: FlightKey
    arrival_time: datetime
    base_price: float
    status: str
    departure_airport: str
    arrival_airport: str
    departure_city: Optional[str]
    arrival_city: Optional[str]
    seats_available: int

    def as_dict(self) -> dict:
        return {
            "flightKey": self.key.as_dict(),
            "airline": self.key.airline,
            "flightNumber": self.key.flight_number,
            "depDatetime": self.key.departure.isoformat(),
            "arrDatetime": self.arrival_time.isoformat(),
            "depAirport": self.departure_airport,
            "arrAirport": self.arrival_airport,
            "depCity": self.departure_city,
            "arrCity": self.arrival_city,
            "basePrice": self.base_price,
            "status": self.status,
            "seatsAvailable": self.seats_available,
        }


@dataclass
class SearchPage:
    flights: List[FlightListing]
    total: int
    page: int
    page_size: int


def day_bounds(start: Optional[date], end: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Turn an inclusive date range into ``[lower, upper)`` datetimes."""

    lower = datetime.combine(start, time.min) if start else None
    upper = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return lower, upper


def _booked_count(session: Session, key: FlightKey) -> int:
    return session.scalar(select(func.count()).select_from(Ticket).where(*key_filter(Ticket, key))) or 0


def seats_available(session: Session, key: FlightKey) -> int:
    """Return ``capacity - booked`` for the flight, never below zero.

    This is a plain read and only informational; :func:`purchase_ticket`
    re-checks under lock before selling a seat.
    """

    capacity = session.scalar(
        select(Airplane.seat_count)
        .select_from(Flight)
        .join(Flight.airplane)
        .where(*key_filter(Flight, key))
    )
    if capacity is None:
        raise FlightNotFoundError()
    return max(0, capacity - _booked_count(session, key))


def _issue_ticket(session: Session, customer_email: str, key: FlightKey, payment, now: datetime) -> Ticket:
    # Every row feeding the decision is locked: flight, its tickets, its airplane.
    flight = session.scalars(
        select(Flight).where(*key_filter(Flight, key)).with_for_update()
    ).one_or_none()
    if flight is None:
        raise FlightNotFoundError()

    booked = len(
        session.scalars(select(Ticket.id).where(*key_filter(Ticket, key)).with_for_update()).all()
    )
    airplane = session.scalars(
        select(Airplane)
        .where(Airplane.airline_name == flight.airline_name, Airplane.id == flight.airplane_id)
        .with_for_update()
    ).one_or_none()
    if airplane is None:
        raise StoreError(f"Airplane {flight.airplane_id} of {flight.airline_name} is missing")

    if booked >= airplane.seat_count:
        logger.info("Flight %s %s at %s is sold out (%d seats)", key.airline, key.flight_number, key.departure, booked)
        raise SoldOutError()

    ticket = Ticket(
        customer_email=customer_email,
        airline_name=key.airline,
        flight_number=key.flight_number,
        departure_time=key.departure,
        purchased_at=now,
        card_type=payment.card_type,
        card_number=payment.masked_number,
        name_on_card=payment.name_on_card,
        card_expiry=payment.expiration,
    )
    session.add(ticket)
    session.flush()
    return ticket


def purchase_ticket(
    session_factory: sessionmaker[Session],
    *,
    customer_email: str,
    flight_key: FlightKey,
    payment: PaymentDetails,
    now: Optional[datetime] = None,
) -> PurchaseResult:
    """Sell one seat on ``flight_key`` to ``customer_email`` atomically.

    Payment details are validated before the database is touched. The
    availability check and the insert run in one unit of work holding locks on
    the flight, its tickets and its airplane, so concurrent purchasers of the
    same flight are serialized and the flight is never oversold.
    """

    now = now or utcnow()
    validated = validate_payment(payment, now=now)
    try:
        with session_scope(session_factory) as session:
            ticket = _issue_ticket(session, customer_email, flight_key, validated, now)
            result = PurchaseResult(ticket.id, flight_key, customer_email)
    except SQLAlchemyError as exc:
        raise StoreError("Ticket purchase failed") from exc

    logger.info(
        "Issued ticket %s on %s %s to %s",
        result.public_id,
        flight_key.airline,
        flight_key.flight_number,
        customer_email,
    )
    return result


def _location_clause(code_column, airport, term: str):
    term = term.strip()
    return or_(code_column == term.upper(), func.lower(airport.city).like(f"%{term.lower()}%"))


def search_flights(
    session: Session,
    *,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    departure_date: Optional[date] = None,
    page: int = 1,
    page_size: int = 5,
    now: Optional[datetime] = None,
) -> SearchPage:
    """Return upcoming flights matching airport codes or city names, one page at a time."""

    if page < 1:
        raise ValidationError("Page must be at least 1", field="page")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}", field="pageSize")

    dep = aliased(Airport)
    arr = aliased(Airport)
    stmt: Select = (
        select(Flight, dep.city, arr.city)
        .join(Flight.origin.of_type(dep))
        .join(Flight.destination.of_type(arr))
        .where(Flight.departure_time >= (now or utcnow()))
    )
    if origin and origin.strip():
        stmt = stmt.where(_location_clause(Flight.departure_airport, dep, origin))
    if destination and destination.strip():
        stmt = stmt.where(_location_clause(Flight.arrival_airport, arr, destination))
    if departure_date:
        start, end = day_bounds(departure_date, departure_date)
        stmt = stmt.where(Flight.departure_time >= start, Flight.departure_time < end)

    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = session.execute(
        stmt.order_by(Flight.departure_time).limit(page_size).offset((page - 1) * page_size)
    ).all()

    listings = [
        FlightListing(
            key=flight.key,
            arrival_time=flight.arrival_time,
            base_price=float(flight.base_price),
            status=flight.status,
            departure_airport=flight.departure_airport,
            arrival_airport=flight.arrival_airport,
            departure_city=dep_city,
            arrival_city=arr_city,
            seats_available=seats_available(session, flight.key),
        )
        for flight, dep_city, arr_city in rows
    ]
    return SearchPage(flights=listings, total=total, page=page, page_size=page_size)


def customer_tickets(
    session: Session,
    customer_email: str,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[dict]:
    stmt = select(Ticket, Flight).join(Ticket.flight).where(Ticket.customer_email == customer_email)
    lower, upper = day_bounds(date_from, date_to)
    if lower:
        stmt = stmt.where(Flight.departure_time >= lower)
    if upper:
        stmt = stmt.where(Flight.departure_time < upper)
    rows = session.execute(stmt.order_by(Flight.departure_time, Ticket.id)).all()
    return [
        {
            "ticketId": ticket.public_id,
            "flightKey": flight.key.as_dict(),
            "customerEmail": ticket.customer_email,
            "depAirport": flight.departure_airport,
            "arrAirport": flight.arrival_airport,
            "depDatetime": flight.departure_time.isoformat(),
            "arrDatetime": flight.arrival_time.isoformat(),
            "basePrice": float(flight.base_price),
            "flightStatus": flight.status,
            "purchaseDate": ticket.purchased_at.isoformat(),
            "cardType": ticket.card_type,
            "cardNumber": ticket.card_number,
        }
        for ticket, flight in rows
    ]


def _review_payload(review: Review) -> dict:
    key = FlightKey(review.airline_name, review.flight_number, review.departure_time)
    return {
        "id": review.id,
        "flightKey": key.as_dict(),
        "customerEmail": review.customer_email,
        "rating": review.rating,
        "comment": review.comment or "",
        "date": review.created_at.isoformat(),
    }


def submit_review(
    session: Session,
    *,
    customer_email: str,
    flight_key: FlightKey,
    rating: int,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Record a rating for a flight that has already departed."""

    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number between 1 and 5", field="rating")
    comment = (comment or "").strip() or None
    if comment and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError("Comment is too long", field="comment")

    flight = session.scalars(select(Flight).where(*key_filter(Flight, flight_key))).one_or_none()
    if flight is None:
        raise FlightNotFoundError()
    if flight.departure_time > (now or utcnow()):
        raise ValidationError("Flights can only be rated after departure", field="flightKey")

    review = Review(
        customer_email=customer_email,
        airline_name=flight_key.airline,
        flight_number=flight_key.flight_number,
        departure_time=flight_key.departure,
        rating=rating,
        comment=comment,
        created_at=now or utcnow(),
    )
    session.add(review)
    session.flush()
    logger.info("Review %s stored for %s %s", review.id, flight_key.airline, flight_key.flight_number)
    return _review_payload(review)


def flight_reviews(session: Session, key: FlightKey) -> dict:
    if session.scalars(select(Flight.flight_number).where(*key_filter(Flight, key))).first() is None:
        raise FlightNotFoundError()
    reviews = list(session.scalars(select(Review).where(*key_filter(Review, key)).order_by(Review.id)))
    average = sum(r.rating for r in reviews) / len(reviews) if reviews else 0
    return {
        "flightKey": key.as_dict(),
        "averageRating": average,
        "totalRatings": len(reviews),
        "ratings": [_review_payload(r) for r in reviews],
    }


def customer_reviews(session: Session, customer_email: str) -> List[dict]:
    reviews = session.scalars(
        select(Review).where(Review.customer_email == customer_email).order_by(Review.id)
    )
    return [_review_payload(r) for r in reviews]


__all__ = [
    "FlightListing",
    "PurchaseResult",
    "SearchPage",
    "customer_reviews",
    "customer_tickets",
    "day_bounds",
    "flight_reviews",
    "purchase_ticket",
    "search_flights",
    "seats_available",
    "submit_review",
]
