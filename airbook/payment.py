"""Validation of the payment details submitted with a ticket purchase."""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .errors import ValidationError
from .models import CARD_TYPES, utcnow

_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")
_MIN_CARD_DIGITS = 12
_MAX_CARD_DIGITS = 32
_MAX_NAME_LENGTH = 120


@dataclass
class PaymentDetails:
    """Raw payment fields as received from the caller."""

    card_type: str = ""
    card_number: str = ""
    name_on_card: str = ""
    expiration: str = ""


@dataclass(frozen=True)
class ValidatedPayment:
    card_type: str
    masked_number: str
    name_on_card: str
    expiration: str


def _clean(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def mask_card_number(number: str) -> str:
    """Replace every digit but the last four with ``*``."""

    if len(number) <= 4:
        return number
    return "*" * (len(number) - 4) + number[-4:]


def expiry_end(expiration: str) -> datetime:
    """Return the last second of the month named by an ``MM/YY`` expiry."""

    match = _EXPIRY_RE.match(expiration)
    if match is None:
        raise ValueError(f"not an MM/YY expiry: {expiration!r}")
    month = int(match.group(1))
    year = 2000 + int(match.group(2))
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day, 23, 59, 59)


def validate_payment(details: PaymentDetails, *, now: Optional[datetime] = None) -> ValidatedPayment:
    """Check every payment field, raising :class:`ValidationError` on the first bad one."""

    card_type = _clean(details.card_type).lower()
    if card_type not in CARD_TYPES:
        raise ValidationError("Card type must be credit or debit", field="cardType")

    card_number = re.sub(r"\s+", "", _clean(details.card_number))
    if not card_number:
        raise ValidationError("Card number is required", field="cardNumber")
    if not card_number.isdigit() or not card_number.isascii():
        raise ValidationError("Card number must contain only digits", field="cardNumber")
    if not _MIN_CARD_DIGITS <= len(card_number) <= _MAX_CARD_DIGITS:
        raise ValidationError(
            f"Card number must be between {_MIN_CARD_DIGITS} and {_MAX_CARD_DIGITS} digits",
            field="cardNumber",
        )

    name_on_card = _clean(details.name_on_card)
    if not name_on_card:
        raise ValidationError("Name on card is required", field="nameOnCard")
    if len(name_on_card) > _MAX_NAME_LENGTH:
        raise ValidationError("Name on card is too long", field="nameOnCard")

    expiration = _clean(details.expiration)
    if not _EXPIRY_RE.match(expiration):
        raise ValidationError("Expiry must be in MM/YY format", field="expiration")
    if expiry_end(expiration) < (now or utcnow()):
        raise ValidationError("Card is expired", field="expiration")

    return ValidatedPayment(
        card_type=card_type,
        masked_number=mask_card_number(card_number),
        name_on_card=name_on_card,
        expiration=expiration,
    )


__all__ = [
    "PaymentDetails",
    "ValidatedPayment",
    "expiry_end",
    "mask_card_number",
    "validate_payment",
]
