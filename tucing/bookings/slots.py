"""Row placement of bookings on the month calendar."""

from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .models import Booking, ServiceType

MAX_VISIBLE_BOOKINGS = 3

# Boarding bars take the lowest rows so multi-day stays line up across cells.
SERVICE_ORDER = (ServiceType.BOARDING, ServiceType.GROOMING)


def _service_rank(service_type: ServiceType) -> int:
    return SERVICE_ORDER.index(service_type)


def assign_positions(bookings: Iterable[Booking]) -> dict[str, int]:
    """Give every booking a stable row index.

    Boarding bookings are numbered first in listing order, then grooming
    bookings continue the same counter. Repeated ids keep their first index.
    """

    bookings = list(bookings)
    positions: dict[str, int] = {}
    for service_type in SERVICE_ORDER:
        for booking in bookings:
            if booking.service_type is service_type and booking.id not in positions:
                positions[booking.id] = len(positions)
    return positions


def bookings_for_date(
    bookings: Sequence[Booking],
    day: dt.date,
    positions: dict[str, int] | None = None,
    limit: int | None = MAX_VISIBLE_BOOKINGS,
) -> list[Booking]:
    """Return the bookings shown in the cell for ``day``.

    Boarding comes before grooming, then row position decides. Anything past
    ``limit`` is dropped.
    """

    if positions is None:
        positions = assign_positions(bookings)
    on_day = [booking for booking in bookings if booking.covers(day)]
    on_day.sort(key=lambda b: (_service_rank(b.service_type), positions.get(b.id, 0)))
    if limit is None:
        return on_day
    return on_day[:limit]


@dataclass
class DayCell:
    date: dt.date
    bookings: list[Booking] = field(default_factory=list)
    is_today: bool = False
    slots: int = MAX_VISIBLE_BOOKINGS

    @property
    def day(self) -> int:
        return self.date.day

    @property
    def empty_slots(self) -> int:
        return max(self.slots - len(self.bookings), 0)


def month_grid(
    year: int,
    month: int,
    bookings: Sequence[Booking],
    *,
    today: dt.date | None = None,
    limit: int | None = MAX_VISIBLE_BOOKINGS,
) -> list[list[DayCell | None]]:
    """Return the weeks of a month, Sunday first, padded with ``None``."""

    today = today or dt.date.today()
    positions = assign_positions(bookings)
    weeks: list[list[DayCell | None]] = []
    for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month):
        row: list[DayCell | None] = []
        for day in week:
            if day.month != month:
                row.append(None)
                continue
            row.append(
                DayCell(
                    date=day,
                    bookings=bookings_for_date(bookings, day, positions, limit),
                    is_today=day == today,
                    slots=limit or 0,
                )
            )
        weeks.append(row)
    return weeks


__all__ = [
    "DayCell",
    "MAX_VISIBLE_BOOKINGS",
    "SERVICE_ORDER",
    "assign_positions",
    "bookings_for_date",
    "month_grid",
]
