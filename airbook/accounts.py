"""Customer and staff registration, password checks and session principals."""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import date
from typing import Iterable, Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import AuthenticationError, ValidationError
from .models import Airline, AirlineStaff, Customer, StaffPhone

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
PHONE_RE = re.compile(r"^[\d\s()+-]{7,30}$")
MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72
MIN_STAFF_AGE = 18

CUSTOMER = "customer"
STAFF = "staff"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: a customer (by email) or a staff member (by username)."""

    identity: str
    role: str
    airline: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Principal":
        return cls(identity=data["identity"], role=data["role"], airline=data.get("airline"))


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def _required(value: object, field: str, label: str) -> str:
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValidationError(f"{label} is required", field=field)
    return cleaned


def _parse_date(value: object, field: str, label: str) -> date:
    if isinstance(value, date):
        return value
    text = _required(value, field, label)
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"{label} is invalid", field=field) from exc


def _check_password(password: object) -> str:
    if not isinstance(password, str) or len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes", field="password"
        )
    return password


def _check_email(email: object) -> str:
    cleaned = _required(email, "email", "Email")
    if not EMAIL_RE.match(cleaned):
        raise ValidationError("Email is invalid", field="email")
    return cleaned


def age_on(birth: date, today: date) -> int:
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def register_customer(
    session: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    phone_number: str,
    building_number: str,
    street: str,
    city: str,
    state: str,
    passport_number: str,
    passport_country: str,
    passport_expiration,
    date_of_birth,
    today: Optional[date] = None,
) -> Principal:
    """Validate and store a new customer, returning their principal."""

    today = today or date.today()
    email = _check_email(email)
    password = _check_password(password)
    full_name = _required(full_name, "fullName", "Full name")
    phone_number = _required(phone_number, "phoneNumber", "Phone number")
    if not PHONE_RE.match(phone_number):
        raise ValidationError("Phone number format is invalid", field="phoneNumber")
    building_number = _required(building_number, "buildingNumber", "Building number")
    street = _required(street, "street", "Street")
    city = _required(city, "city", "City")
    state = _required(state, "state", "State")
    passport_number = _required(passport_number, "passportNumber", "Passport number")
    passport_country = _required(passport_country, "passportCountry", "Passport country")
    passport_expiry = _parse_date(passport_expiration, "passportExpiration", "Passport expiration date")
    birth = _parse_date(date_of_birth, "dateOfBirth", "Date of birth")
    if passport_expiry <= today:
        raise ValidationError(
            "Passport expiration date must be in the future", field="passportExpiration"
        )
    if birth >= today:
        raise ValidationError("Date of birth is invalid", field="dateOfBirth")

    if session.get(Customer, email) is not None:
        raise ValidationError("Email already registered", field="email")
    if session.scalars(select(Customer.email).where(Customer.phone == phone_number)).first():
        raise ValidationError("Phone number already registered", field="phoneNumber")

    session.add(
        Customer(
            email=email,
            password_hash=hash_password(password),
            name=full_name,
            phone=phone_number,
            building_number=building_number,
            street=street,
            city=city,
            state=state,
            passport_number=passport_number,
            passport_country=passport_country,
            passport_expiry=passport_expiry,
            date_of_birth=birth,
        )
    )
    session.flush()
    logger.info("Registered customer %s", email)
    return Principal(identity=email, role=CUSTOMER)


def register_staff(
    session: Session,
    *,
    username: str,
    password: str,
    email: str,
    first_name: str,
    last_name: str,
    date_of_birth,
    airline_name: str,
    phone_numbers: Iterable[str],
    today: Optional[date] = None,
) -> Principal:
    """Validate and store a new airline staff member."""

    today = today or date.today()
    airline_name = _required(airline_name, "airlineName", "Airline name")
    username = _required(username, "username", "Username")
    email = _check_email(email)
    password = _check_password(password)
    first_name = _required(first_name, "firstName", "First name")
    last_name = _required(last_name, "lastName", "Last name")
    birth = _parse_date(date_of_birth, "dateOfBirth", "Date of birth")
    if age_on(birth, today) < MIN_STAFF_AGE:
        raise ValidationError(f"Staff must be at least {MIN_STAFF_AGE} years old", field="dateOfBirth")

    phones = [p.strip() for p in phone_numbers if isinstance(p, str) and p.strip()]
    if not phones:
        raise ValidationError("At least one phone number is required", field="phoneNumbers")
    for index, phone in enumerate(phones):
        if not PHONE_RE.match(phone):
            raise ValidationError("Phone number format is invalid", field=f"phoneNumbers[{index}]")

    if session.get(Airline, airline_name) is None:
        raise ValidationError(f"Unknown airline '{airline_name}'", field="airlineName")
    if session.get(AirlineStaff, username) is not None:
        raise ValidationError("Username already exists", field="username")
    if session.scalars(select(AirlineStaff.username).where(AirlineStaff.email == email)).first():
        raise ValidationError("Email already exists", field="email")

    staff = AirlineStaff(
        username=username,
        password_hash=hash_password(password),
        email=email,
        first_name=first_name,
        last_name=last_name,
        date_of_birth=birth,
        airline_name=airline_name,
        phones=[StaffPhone(phone=phone) for phone in dict.fromkeys(phones)],
    )
    session.add(staff)
    session.flush()
    logger.info("Registered staff %s for %s", username, airline_name)
    return Principal(identity=username, role=STAFF, airline=airline_name)


def authenticate(session: Session, username: str, password: str) -> Principal:
    """Resolve credentials to a principal, trying customers before staff."""

    username = (username or "").strip()
    customer = session.get(Customer, username) if username else None
    if customer is not None and verify_password(password or "", customer.password_hash):
        return Principal(identity=customer.email, role=CUSTOMER)

    staff = session.get(AirlineStaff, username) if username else None
    if staff is not None and verify_password(password or "", staff.password_hash):
        return Principal(identity=staff.username, role=STAFF, airline=staff.airline_name)

    logger.warning("Failed login for %r", username)
    raise AuthenticationError("Invalid credentials")


__all__ = [
    "CUSTOMER",
    "STAFF",
    "Principal",
    "age_on",
    "authenticate",
    "hash_password",
    "register_customer",
    "register_staff",
    "verify_password",
]
