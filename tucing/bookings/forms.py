"""Booking form parsing and validation."""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Mapping

from .models import Booking, ServiceType, ValidationError, new_booking_id, parse_date

FEES_MESSAGE = "Total fees must be a non-negative number"


def _text(form: Mapping[str, Any], name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def _date_field(form: Mapping[str, Any], name: str, errors: dict[str, str], message: str) -> dt.date | None:
    raw = _text(form, name)
    if not raw:
        return None
    try:
        return parse_date(raw)
    except ValueError:
        errors[name] = message
        return None


def parse_booking_form(form: Mapping[str, Any], existing: Booking | None = None) -> Booking:
    """Build a booking from submitted form fields.

    When ``existing`` is given the booking is being edited: its id and service
    type win over anything submitted.
    """

    errors: dict[str, str] = {}

    if existing is not None:
        service_type = existing.service_type
    else:
        try:
            service_type = ServiceType(_text(form, "service_type") or ServiceType.GROOMING.value)
        except ValueError:
            errors["service_type"] = "Unknown service type"
            service_type = ServiceType.GROOMING

    cat_name = _text(form, "cat_name")
    if not cat_name:
        errors["cat_name"] = "Cat name is required"
    owner_name = _text(form, "owner_name")
    if not owner_name:
        errors["owner_name"] = "Owner name is required"

    start_date = _date_field(form, "start_date", errors, "Start date is not a valid date")
    if start_date is None and "start_date" not in errors:
        errors["start_date"] = "Start date is required"

    end_date: dt.date | None = None
    if service_type is ServiceType.BOARDING:
        end_date = _date_field(form, "end_date", errors, "End date is not a valid date")
        if end_date is None and "end_date" not in errors:
            errors["end_date"] = "End date is required for boarding"
        elif start_date is not None and end_date is not None and end_date < start_date:
            errors["end_date"] = "End date cannot be before start date"
    elif service_type is not ServiceType.GROOMING:
        raise ValueError(f"Unhandled service type {service_type!r}")

    total_fees: float | None = None
    raw_fees = _text(form, "total_fees")
    if raw_fees:
        try:
            total_fees = float(raw_fees)
        except ValueError:
            errors["total_fees"] = FEES_MESSAGE
        else:
            if not math.isfinite(total_fees) or total_fees < 0:
                errors["total_fees"] = FEES_MESSAGE

    if errors:
        raise ValidationError("; ".join(errors.values()), errors)

    return Booking(
        id=existing.id if existing is not None else (_text(form, "id") or new_booking_id()),
        service_type=service_type,
        cat_name=cat_name,
        owner_name=owner_name,
        start_date=start_date,
        end_date=end_date,
        notes=_text(form, "notes") or None,
        total_fees=total_fees,
        contact_number=_text(form, "contact_number") or None,
    )


def form_defaults(
    *,
    booking: Booking | None = None,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    service_type: ServiceType | None = None,
    today: dt.date | None = None,
) -> dict[str, str]:
    """Initial field values for the create or edit form."""

    if booking is not None:
        return {
            "id": booking.id,
            "service_type": booking.service_type.value,
            "cat_name": booking.cat_name,
            "owner_name": booking.owner_name,
            "start_date": booking.start_date.isoformat(),
            "end_date": booking.end_date.isoformat() if booking.end_date else "",
            "notes": booking.notes or "",
            "total_fees": f"{booking.total_fees:g}" if booking.total_fees is not None else "",
            "contact_number": booking.contact_number or "",
        }
    start_date = start_date or today or dt.date.today()
    return {
        "id": "",
        "service_type": (service_type or ServiceType.GROOMING).value,
        "cat_name": "",
        "owner_name": "",
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat() if end_date else "",
        "notes": "",
        "total_fees": "",
        "contact_number": "",
    }


__all__ = ["form_defaults", "parse_booking_form"]
