"""Coordinates calendar gestures, the booking form and the store."""

from __future__ import annotations

import datetime as dt
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Mapping

from .forms import form_defaults, parse_booking_form
from .models import AuthorizationError, Booking, ServiceType
from .selection import DoubleClick, RangeSelected, SelectionEvent
from .slots import MAX_VISIBLE_BOOKINGS, DayCell, month_grid
from .store import BookingStore

logger = logging.getLogger(__name__)

TABS = ("all", "boarding", "grooming")


@dataclass
class AuthContext:
    """Whether the current session has passed the password gate."""

    authenticated: bool = False

    @classmethod
    def login(cls, password: str, expected: str) -> "AuthContext":
        ok = bool(expected) and secrets.compare_digest(password.encode(), expected.encode())
        if not ok:
            logger.info("Rejected dashboard password")
        return cls(authenticated=ok)

    def require(self) -> None:
        if not self.authenticated:
            raise AuthorizationError("Enter the password to access the booking dashboard")


@dataclass(frozen=True)
class BookingIntent:
    """What the booking form should open with."""

    start_date: dt.date | None = None
    end_date: dt.date | None = None
    booking: Booking | None = None
    service_type: ServiceType | None = None

    @property
    def is_edit(self) -> bool:
        return self.booking is not None

    @classmethod
    def from_event(cls, event: SelectionEvent) -> "BookingIntent":
        if isinstance(event, RangeSelected):
            return cls(event.start_date, event.end_date, service_type=ServiceType.BOARDING)
        if isinstance(event, DoubleClick):
            return cls(event.date, service_type=ServiceType.GROOMING)
        raise TypeError(f"Unhandled selection event {event!r}")

    @classmethod
    def for_date(cls, day: dt.date) -> "BookingIntent":
        return cls(start_date=day)

    @classmethod
    def for_edit(cls, booking: Booking) -> "BookingIntent":
        return cls(booking=booking)

    def defaults(self) -> dict[str, str]:
        return form_defaults(
            booking=self.booking,
            start_date=self.start_date,
            end_date=self.end_date,
            service_type=self.service_type,
        )

    def query_args(self) -> dict[str, str]:
        args: dict[str, str] = {}
        if self.start_date is not None:
            args["start_date"] = self.start_date.isoformat()
        if self.end_date is not None:
            args["end_date"] = self.end_date.isoformat()
        if self.service_type is not None:
            args["service_type"] = self.service_type.value
        return args


def format_currency(amount: float | None, label: str = "RM") -> str:
    if amount is None:
        return "-"
    return f"{label} {amount:.2f}"


class Dashboard:
    """Booking operations available to an authenticated session."""

    def __init__(
        self,
        store: BookingStore,
        auth: AuthContext,
        *,
        max_per_day: int = MAX_VISIBLE_BOOKINGS,
    ) -> None:
        self.store = store
        self.auth = auth
        self.max_per_day = max_per_day

    def bookings(self) -> list[Booking]:
        self.auth.require()
        return self.store.list()

    def get(self, booking_id: str) -> Booking | None:
        self.auth.require()
        return self.store.get(booking_id)

    def handle_event(self, event: SelectionEvent) -> BookingIntent:
        self.auth.require()
        return BookingIntent.from_event(event)

    def save(self, form: Mapping[str, Any], intent: BookingIntent) -> Booking:
        """Validate the form and create or update the booking."""

        self.auth.require()
        booking = parse_booking_form(form, existing=intent.booking)
        if intent.is_edit:
            return self.store.update(booking)
        return self.store.create(booking)

    def delete(self, booking_id: str) -> None:
        self.auth.require()
        self.store.delete(booking_id)

    def table(self, tab: str = "all") -> list[Booking]:
        """Bookings for the list view, newest start date first."""

        self.auth.require()
        if tab not in TABS:
            tab = "all"
        rows = sorted(self.store.list(), key=lambda b: b.start_date, reverse=True)
        if tab == "all":
            return rows
        service_type = ServiceType(tab)
        return [booking for booking in rows if booking.service_type is service_type]

    def calendar(
        self, year: int, month: int, *, today: dt.date | None = None
    ) -> list[list[DayCell | None]]:
        self.auth.require()
        return month_grid(year, month, self.store.list(), today=today, limit=self.max_per_day)


__all__ = ["AuthContext", "BookingIntent", "Dashboard", "TABS", "format_currency"]
