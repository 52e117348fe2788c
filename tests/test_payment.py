from datetime import datetime

import pytest

from airbook.errors import ValidationError
from airbook.payment import PaymentDetails, expiry_end, mask_card_number, validate_payment

NOW = datetime(2026, 6, 15, 12, 0)


def details(**overrides) -> PaymentDetails:
    fields = dict(
        card_type=" Debit ",
        card_number="5500 0000 0000 0004",
        name_on_card="  Bob Traveler ",
        expiration="08/27",
    )
    fields.update(overrides)
    return PaymentDetails(**fields)


def test_valid_payment_is_normalized_and_masked():
    payment = validate_payment(details(), now=NOW)

    assert payment.card_type == "debit"
    assert payment.masked_number == "************0004"
    assert payment.name_on_card == "Bob Traveler"
    assert payment.expiration == "08/27"


def test_card_valid_through_end_of_expiry_month():
    assert validate_payment(details(expiration="06/26"), now=NOW).expiration == "06/26"

    with pytest.raises(ValidationError) as excinfo:
        validate_payment(details(expiration="05/26"), now=NOW)
    assert excinfo.value.field == "expiration"
    assert excinfo.value.message == "Card is expired"


def test_expiry_end_handles_short_months():
    assert expiry_end("02/28") == datetime(2028, 2, 29, 23, 59, 59)
    assert expiry_end("04/27") == datetime(2027, 4, 30, 23, 59, 59)


def test_fields_are_checked_in_order():
    bad = details(card_type="", card_number="abc", expiration="bad")

    with pytest.raises(ValidationError) as excinfo:
        validate_payment(bad, now=NOW)

    assert excinfo.value.field == "cardType"


@pytest.mark.parametrize(
    "number, message",
    [
        ("", "Card number is required"),
        ("4111-1111-1111", "Card number must contain only digits"),
        ("12345678901", "Card number must be between 12 and 32 digits"),
        ("1" * 33, "Card number must be between 12 and 32 digits"),
    ],
)
def test_card_number_rules(number, message):
    with pytest.raises(ValidationError) as excinfo:
        validate_payment(details(card_number=number), now=NOW)

    assert excinfo.value.field == "cardNumber"
    assert excinfo.value.message == message


def test_card_number_length_bounds_are_inclusive():
    assert validate_payment(details(card_number="1" * 12), now=NOW).masked_number == "********1111"
    assert len(validate_payment(details(card_number="2" * 32), now=NOW).masked_number) == 32


def test_name_on_card_limit():
    assert validate_payment(details(name_on_card="x" * 120), now=NOW)

    with pytest.raises(ValidationError) as excinfo:
        validate_payment(details(name_on_card="x" * 121), now=NOW)
    assert excinfo.value.field == "nameOnCard"


@pytest.mark.parametrize("expiration", ["13/99", "00/30", "1/30", "01-30", "0130"])
def test_malformed_expiry(expiration):
    with pytest.raises(ValidationError) as excinfo:
        validate_payment(details(expiration=expiration), now=NOW)

    assert excinfo.value.field == "expiration"
    assert excinfo.value.message == "Expiry must be in MM/YY format"


def test_mask_keeps_short_numbers():
    assert mask_card_number("1234") == "1234"
    assert mask_card_number("123456") == "**3456"
