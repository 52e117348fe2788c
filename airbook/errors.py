"""Exceptions raised by the reservation services."""
from __future__ import annotations

from typing import Optional


class ReservationError(RuntimeError):
    """Base class for failures reported back to API callers."""

    error_kind = "internal"
    status_code = 500

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def as_payload(self) -> dict:
        payload = {"errorKind": self.error_kind, "detail": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(ReservationError):
    """Raised when request input fails validation. No store access happened."""

    error_kind = "validation"
    status_code = 400


class NotFoundError(ReservationError):
    error_kind = "not_found"
    status_code = 404


class FlightNotFoundError(NotFoundError):
    def __init__(self, message: str = "Flight not found", **kwargs) -> None:
        super().__init__(message, **kwargs)


class SoldOutError(ReservationError):
    """Raised when every seat of a flight is already booked."""

    error_kind = "sold_out"
    status_code = 400

    def __init__(self, message: str = "No seats available") -> None:
        super().__init__(message)


class ConflictError(ReservationError):
    error_kind = "conflict"
    status_code = 409


class AuthenticationError(ReservationError):
    error_kind = "unauthorized"
    status_code = 401


class AuthorizationError(ReservationError):
    error_kind = "forbidden"
    status_code = 403


class StoreError(ReservationError):
    """Raised when the database fails underneath a unit of work."""


__all__ = [
    "ReservationError",
    "ValidationError",
    "NotFoundError",
    "FlightNotFoundError",
    "SoldOutError",
    "ConflictError",
    "AuthenticationError",
    "AuthorizationError",
    "StoreError",
]
