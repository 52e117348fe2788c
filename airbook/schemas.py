"""Request bodies accepted by the HTTP API."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import FlightKey
from .payment import PaymentDetails


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FlightKeyIn(ApiModel):
    airline: str
    flight_number: str
    departure: datetime

    def to_key(self) -> FlightKey:
        return FlightKey(self.airline.strip(), self.flight_number.strip(), self.departure)


# Payment fields default to "" so that missing values surface as field-level
# validation errors from airbook.payment rather than schema errors.
class PaymentIn(ApiModel):
    card_type: str = ""
    card_number: str = ""
    name_on_card: str = ""
    expiration: str = ""

    def to_details(self) -> PaymentDetails:
        return PaymentDetails(
            card_type=self.card_type,
            card_number=self.card_number,
            name_on_card=self.name_on_card,
            expiration=self.expiration,
        )


class PurchaseIn(ApiModel):
    flight_key: FlightKeyIn
    payment: PaymentIn = Field(default_factory=PaymentIn)


class LoginIn(ApiModel):
    username: str = ""
    password: str = ""


class CustomerRegistrationIn(ApiModel):
    email: str = ""
    password: str = ""
    full_name: str = ""
    phone_number: str = ""
    building_number: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    passport_number: str = ""
    passport_country: str = ""
    passport_expiration: str = ""
    date_of_birth: str = ""


class StaffRegistrationIn(ApiModel):
    username: str = ""
    password: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    airline_name: str = ""
    phone_numbers: List[str] = Field(default_factory=list)
    phone_number: Optional[str] = None

    def all_phone_numbers(self) -> List[str]:
        if self.phone_numbers:
            return list(self.phone_numbers)
        return [self.phone_number] if self.phone_number else []


class RatingIn(ApiModel):
    flight_key: FlightKeyIn
    rating: int = 0
    comment: Optional[str] = None


class FlightIn(ApiModel):
    flight_number: str = ""
    dep_datetime: Optional[datetime] = None
    arr_datetime: Optional[datetime] = None
    base_price: float = 0.0
    dep_airport: str = ""
    arr_airport: str = ""
    airplane_id: Optional[int] = None
    status: str = "on-time"


class StatusIn(ApiModel):
    status: str = ""


class AirplaneIn(ApiModel):
    airplane_id: Optional[int] = None
    number_of_seats: Optional[int] = None
    manufacturer: str = ""
    age: int = 0
