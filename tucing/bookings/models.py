"""Booking records and their serialized forms."""

from __future__ import annotations

import datetime as dt
import enum
import math
import uuid
from dataclasses import dataclass, replace
from typing import Any


class AuthorizationError(RuntimeError):
    """Raised when a dashboard action is attempted without a session."""


class ValidationError(RuntimeError):
    """Raised when incoming booking data fails validation."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class StoreError(RuntimeError):
    """Raised by a storage backend when a request cannot be completed."""


class ServiceType(str, enum.Enum):
    BOARDING = "boarding"
    GROOMING = "grooming"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def new_booking_id() -> str:
    return str(uuid.uuid4())


def parse_date(value: Any) -> dt.date:
    """Return a calendar date from a date, datetime or ISO-8601 string."""

    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and value:
        # Browsers send full timestamps such as 2024-06-01T00:00:00.000Z
        return dt.date.fromisoformat(value[:10])
    raise ValueError(f"Not a calendar date: {value!r}")


def _optional_date(value: Any) -> dt.date | None:
    if value in (None, ""):
        return None
    return parse_date(value)


def _optional_fees(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return float(value)


@dataclass(frozen=True)
class Booking:
    id: str
    service_type: ServiceType
    cat_name: str
    owner_name: str
    start_date: dt.date
    end_date: dt.date | None = None
    notes: str | None = None
    total_fees: float | None = None
    contact_number: str | None = None

    @property
    def last_date(self) -> dt.date:
        if self.service_type is ServiceType.BOARDING:
            return self.end_date or self.start_date
        if self.service_type is ServiceType.GROOMING:
            return self.start_date
        raise ValueError(f"Unhandled service type {self.service_type!r}")

    def covers(self, day: dt.date) -> bool:
        """True when the booking occupies ``day`` on the calendar."""

        return self.start_date <= day <= self.last_date

    def with_changes(self, **changes: Any) -> "Booking":
        return replace(self, **changes)

    def check(self) -> "Booking":
        """Raise ``ValueError`` unless the record is a valid booking."""

        for label, value in (("cat name", self.cat_name), ("owner name", self.owner_name)):
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Booking {self.id} has no {label}")
        if self.total_fees is not None and not (
            math.isfinite(self.total_fees) and self.total_fees >= 0
        ):
            raise ValueError(f"Booking {self.id} has invalid total fees {self.total_fees!r}")

        if self.service_type is ServiceType.GROOMING:
            if self.end_date is not None:
                raise ValueError(f"Grooming booking {self.id} cannot have an end date")
        elif self.service_type is ServiceType.BOARDING:
            if self.end_date is not None and self.end_date < self.start_date:
                raise ValueError(f"Boarding booking {self.id} ends before it starts")
        else:
            raise ValueError(f"Unhandled service type {self.service_type!r}")
        return self

    # ------------------------------------------------------------------
    # Local storage / export format
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "serviceType": self.service_type.value,
            "catName": self.cat_name,
            "ownerName": self.owner_name,
            "startDate": self.start_date.isoformat(),
        }
        if self.end_date is not None:
            payload["endDate"] = self.end_date.isoformat()
        if self.notes is not None:
            payload["notes"] = self.notes
        if self.total_fees is not None:
            payload["totalFees"] = self.total_fees
        if self.contact_number is not None:
            payload["contactNumber"] = self.contact_number
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Booking":
        booking = cls(
            id=str(data["id"]),
            service_type=ServiceType(data["serviceType"]),
            cat_name=data["catName"],
            owner_name=data["ownerName"],
            start_date=parse_date(data["startDate"]),
            end_date=_optional_date(data.get("endDate")),
            notes=data.get("notes"),
            total_fees=_optional_fees(data.get("totalFees")),
            contact_number=data.get("contactNumber"),
        )
        return booking.check()

    # ------------------------------------------------------------------
    # Relational row format
    # ------------------------------------------------------------------
    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "service_type": self.service_type.value,
            "cat_name": self.cat_name,
            "owner_name": self.owner_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "notes": self.notes,
            "total_fees": self.total_fees,
            "contact_number": self.contact_number,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Booking":
        return cls(
            id=str(row["id"]),
            service_type=ServiceType(row["service_type"]),
            cat_name=row["cat_name"],
            owner_name=row["owner_name"],
            start_date=parse_date(row["start_date"]),
            end_date=_optional_date(row.get("end_date")),
            notes=row.get("notes") or None,
            total_fees=_optional_fees(row.get("total_fees")),
            contact_number=row.get("contact_number") or None,
        )


__all__ = [
    "AuthorizationError",
    "Booking",
    "ServiceType",
    "StoreError",
    "ValidationError",
    "new_booking_id",
    "parse_date",
]
