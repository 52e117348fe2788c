"""FastAPI application exposing the reservation services as a JSON API."""
from __future__ import annotations

import logging
import os
from datetime import date, datetime
from io import BytesIO, StringIO
from typing import Literal, Optional

import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.middleware.sessions import SessionMiddleware

from . import accounts, reports, services, staff
from .accounts import CUSTOMER, STAFF, Principal
from .database import DEFAULT_DATABASE_URL, init_db, session_scope
from .errors import AuthenticationError, AuthorizationError, ReservationError
from .models import FlightKey
from .schemas import (
    AirplaneIn,
    CustomerRegistrationIn,
    FlightIn,
    LoginIn,
    PurchaseIn,
    RatingIn,
    StaffRegistrationIn,
    StatusIn,
)

logger = logging.getLogger(__name__)

SECRET_KEY = os.environ.get("AIRBOOK_SECRET_KEY", "airbook-dev-secret-change-me")
SESSION_MAX_AGE = int(os.environ.get("AIRBOOK_SESSION_MAX_AGE", 24 * 60 * 60))

_SESSION_USER = "user"
_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def current_principal(request: Request) -> Principal:
    data = request.session.get(_SESSION_USER)
    if not data:
        raise AuthenticationError("Please log in")
    return Principal.from_dict(data)


def require_customer(principal: Principal = Depends(current_principal)) -> Principal:
    if principal.role != CUSTOMER:
        raise AuthorizationError("Customer access required")
    return principal


def require_staff(principal: Principal = Depends(current_principal)) -> Principal:
    if principal.role != STAFF:
        raise AuthorizationError("Staff access required")
    return principal


def _login(request: Request, principal: Principal) -> dict:
    request.session[_SESSION_USER] = principal.as_dict()
    return {"authenticated": True, "user": principal.as_dict()}


def create_app(
    session_factory: Optional[sessionmaker[Session]] = None,
    *,
    secret_key: Optional[str] = None,
    session_max_age: Optional[int] = None,
) -> FastAPI:
    """Return the reservation API bound to ``session_factory``."""

    if session_factory is None:
        session_factory = init_db(DEFAULT_DATABASE_URL)

    app = FastAPI(title="Airbook", description="Airline ticket reservations")
    app.state.session_factory = session_factory
    app.add_middleware(
        SessionMiddleware,
        secret_key=secret_key or SECRET_KEY,
        max_age=session_max_age or SESSION_MAX_AGE,
        same_site="lax",
    )

    @app.exception_handler(ReservationError)
    async def reservation_error(request: Request, exc: ReservationError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(exc.as_payload(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = exc.errors()[0] if exc.errors() else {}
        names = [part for part in error.get("loc", ()) if isinstance(part, str)]
        payload = {"errorKind": "validation", "detail": error.get("msg", "Invalid request")}
        # loc starts with "body", "query" or "path"; the field name comes last.
        if len(names) > 1:
            payload["field"] = names[-1]
        return JSONResponse(payload, status_code=400)

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("%s %s failed in the database: %s", request.method, request.url.path, exc)
        return JSONResponse({"errorKind": "internal", "detail": "Internal error"}, status_code=500)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed unexpectedly", request.method, request.url.path)
        return JSONResponse({"errorKind": "internal", "detail": "Internal error"}, status_code=500)

    @app.get("/")
    def root() -> dict:
        return {"message": "Airbook API", "status": "running"}

    # -- identity -----------------------------------------------------------

    @app.post("/api/auth/login")
    def login(body: LoginIn, request: Request) -> dict:
        with session_scope(session_factory) as session:
            principal = accounts.authenticate(session, body.username, body.password)
        logger.info("%s %s logged in", principal.role, principal.identity)
        return _login(request, principal)

    @app.post("/api/auth/logout")
    def logout(request: Request) -> dict:
        request.session.clear()
        return {"message": "Logged out successfully"}

    @app.get("/api/auth/session")
    def check_session(request: Request):
        data = request.session.get(_SESSION_USER)
        if not data:
            return JSONResponse({"authenticated": False}, status_code=401)
        return {"authenticated": True, "user": data}

    @app.post("/api/auth/register/customer")
    def register_customer(body: CustomerRegistrationIn, request: Request) -> dict:
        with session_scope(session_factory) as session:
            principal = accounts.register_customer(
                session,
                email=body.email,
                password=body.password,
                full_name=body.full_name,
                phone_number=body.phone_number,
                building_number=body.building_number,
                street=body.street,
                city=body.city,
                state=body.state,
                passport_number=body.passport_number,
                passport_country=body.passport_country,
                passport_expiration=body.passport_expiration,
                date_of_birth=body.date_of_birth,
            )
        return _login(request, principal)

    @app.post("/api/auth/register/staff")
    def register_staff(body: StaffRegistrationIn, request: Request) -> dict:
        with session_scope(session_factory) as session:
            principal = accounts.register_staff(
                session,
                username=body.username,
                password=body.password,
                email=body.email,
                first_name=body.first_name,
                last_name=body.last_name,
                date_of_birth=body.date_of_birth,
                airline_name=body.airline_name,
                phone_numbers=body.all_phone_numbers(),
            )
        return _login(request, principal)

    # -- customers ----------------------------------------------------------

    @app.get("/api/flights")
    def search(
        from_city: Optional[str] = Query(None, alias="fromCity"),
        to_city: Optional[str] = Query(None, alias="toCity"),
        departure_date: Optional[date] = Query(None, alias="departureDate"),
        page: int = Query(1),
        page_size: int = Query(5, alias="pageSize"),
    ) -> dict:
        with session_scope(session_factory) as session:
            result = services.search_flights(
                session,
                origin=from_city,
                destination=to_city,
                departure_date=departure_date,
                page=page,
                page_size=page_size,
            )
        return {
            "flights": [listing.as_dict() for listing in result.flights],
            "total": result.total,
            "page": result.page,
            "pageSize": result.page_size,
        }

    @app.get("/api/flights/{airline}/{flight_number}/{departure}/availability")
    def availability(airline: str, flight_number: str, departure: datetime) -> dict:
        key = FlightKey(airline, flight_number, departure)
        with session_scope(session_factory) as session:
            seats = services.seats_available(session, key)
        return {"flightKey": key.as_dict(), "seatsAvailable": seats}

    @app.get("/api/flights/{airline}/{flight_number}/{departure}/ratings")
    def ratings_for_flight(airline: str, flight_number: str, departure: datetime) -> dict:
        with session_scope(session_factory) as session:
            return services.flight_reviews(session, FlightKey(airline, flight_number, departure))

    @app.post("/api/tickets/purchase")
    def purchase(body: PurchaseIn, principal: Principal = Depends(require_customer)) -> dict:
        result = services.purchase_ticket(
            session_factory,
            customer_email=principal.identity,
            flight_key=body.flight_key.to_key(),
            payment=body.payment.to_details(),
        )
        return result.as_dict()

    @app.get("/api/customers/tickets")
    def my_tickets(
        date_from: Optional[date] = Query(None, alias="dateFrom"),
        date_to: Optional[date] = Query(None, alias="dateTo"),
        principal: Principal = Depends(require_customer),
    ) -> dict:
        with session_scope(session_factory) as session:
            tickets = services.customer_tickets(
                session, principal.identity, date_from=date_from, date_to=date_to
            )
        return {"tickets": tickets}

    @app.post("/api/ratings")
    def submit_rating(body: RatingIn, principal: Principal = Depends(require_customer)) -> dict:
        with session_scope(session_factory) as session:
            rating = services.submit_review(
                session,
                customer_email=principal.identity,
                flight_key=body.flight_key.to_key(),
                rating=body.rating,
                comment=body.comment,
            )
        return {"success": True, "rating": rating}

    @app.get("/api/ratings/customer")
    def my_ratings(principal: Principal = Depends(require_customer)) -> dict:
        with session_scope(session_factory) as session:
            return {"ratings": services.customer_reviews(session, principal.identity)}

    # -- staff --------------------------------------------------------------

    @app.get("/api/staff/flights")
    def staff_flights(
        date_from: Optional[date] = Query(None, alias="dateFrom"),
        date_to: Optional[date] = Query(None, alias="dateTo"),
        source: Optional[str] = Query(None),
        destination: Optional[str] = Query(None),
        principal: Principal = Depends(require_staff),
    ) -> dict:
        with session_scope(session_factory) as session:
            flights = staff.list_staff_flights(
                session,
                principal.identity,
                date_from=date_from,
                date_to=date_to,
                source=source,
                destination=destination,
            )
        return {"flights": flights}

    @app.post("/api/staff/flights")
    def create_flight(body: FlightIn, principal: Principal = Depends(require_staff)) -> dict:
        with session_scope(session_factory) as session:
            flight = staff.create_flight(
                session,
                principal.identity,
                flight_number=body.flight_number,
                departure_time=body.dep_datetime,
                arrival_time=body.arr_datetime,
                base_price=body.base_price,
                departure_airport=body.dep_airport,
                arrival_airport=body.arr_airport,
                airplane_id=body.airplane_id,
                status=body.status,
            )
            key = flight.key
        return {"success": True, "flightKey": key.as_dict()}

    @app.get("/api/staff/flights/{airline}/{flight_number}/{departure}/passengers")
    def passengers(
        airline: str,
        flight_number: str,
        departure: datetime,
        principal: Principal = Depends(require_staff),
    ) -> dict:
        key = FlightKey(airline, flight_number, departure)
        with session_scope(session_factory) as session:
            rows = staff.flight_passengers(session, principal.identity, key)
        return {"flightKey": key.as_dict(), "passengers": rows}

    @app.patch("/api/staff/flights/{airline}/{flight_number}/{departure}/status")
    def change_status(
        airline: str,
        flight_number: str,
        departure: datetime,
        body: StatusIn,
        principal: Principal = Depends(require_staff),
    ) -> dict:
        key = FlightKey(airline, flight_number, departure)
        with session_scope(session_factory) as session:
            flight = staff.change_flight_status(session, principal.identity, key, body.status)
            status = flight.status
        return {"success": True, "flight": {"flightKey": key.as_dict(), "status": status}}

    @app.get("/api/staff/airplanes")
    def airplanes(principal: Principal = Depends(require_staff)) -> dict:
        with session_scope(session_factory) as session:
            return {"airplanes": staff.list_airplanes(session, principal.identity)}

    @app.post("/api/staff/airplanes")
    def add_airplane(body: AirplaneIn, principal: Principal = Depends(require_staff)) -> dict:
        with session_scope(session_factory) as session:
            staff.add_airplane(
                session,
                principal.identity,
                airplane_id=body.airplane_id,
                seat_count=body.number_of_seats,
                manufacturer=body.manufacturer,
                age=body.age,
            )
            listing = staff.list_airplanes(session, principal.identity)
        return {"success": True, "airplanes": listing}

    # -- reports ------------------------------------------------------------

    @app.get("/api/reports/sales")
    def sales(
        date_from: Optional[date] = Query(None, alias="from"),
        date_to: Optional[date] = Query(None, alias="to"),
        principal: Principal = Depends(require_staff),
    ) -> dict:
        with session_scope(session_factory) as session:
            report = reports.sales_report(
                session, principal.identity, date_from=date_from, date_to=date_to
            )
        return report.as_dict()

    @app.get("/api/reports/sales/download/{file_format}")
    def download_sales(
        file_format: Literal["csv", "xlsx"],
        date_from: Optional[date] = Query(None, alias="from"),
        date_to: Optional[date] = Query(None, alias="to"),
        principal: Principal = Depends(require_staff),
    ) -> StreamingResponse:
        with session_scope(session_factory) as session:
            report = reports.sales_report(
                session, principal.identity, date_from=date_from, date_to=date_to
            )
        dataframe = reports.sales_dataframe(report)
        slug = report.airline.lower().replace(" ", "_")
        headers = {"Content-Disposition": f'attachment; filename="{slug}_sales.{file_format}"'}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        binary = BytesIO()
        with pd.ExcelWriter(binary, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name="Sales")
        binary.seek(0)
        return StreamingResponse(binary, media_type=_XLSX_MEDIA_TYPE, headers=headers)

    return app


__all__ = ["create_app", "current_principal", "require_customer", "require_staff"]
