"""Date selection on the booking calendar.

A single click and the first half of a double-click look the same, so every
click is held for a short window before it is committed. A second click inside
the window turns the pair into a double-click (a one-day grooming request);
otherwise the click becomes either the first date of a boarding range or the
date that closes it.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

from .timers import Cancellable, Scheduler

logger = logging.getLogger(__name__)

DOUBLE_CLICK_WINDOW = 0.25


class SelectionState(enum.Enum):
    IDLE = "idle"
    AWAITING_SECOND_DATE = "awaiting_second_date"


@dataclass(frozen=True)
class RangeSelected:
    start_date: dt.date
    end_date: dt.date


@dataclass(frozen=True)
class DoubleClick:
    date: dt.date


SelectionEvent = Union[RangeSelected, DoubleClick]


class _PendingClick:
    __slots__ = ("date", "handle")

    def __init__(self, date: dt.date) -> None:
        self.date = date
        self.handle: Cancellable | None = None


def _ordered(first: dt.date, second: dt.date) -> tuple[dt.date, dt.date]:
    return (first, second) if first <= second else (second, first)


class SelectionStateMachine:
    """Turns clicks on day cells into range and double-click events."""

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        on_event: Callable[[SelectionEvent], None],
        today: dt.date | None = None,
        window: float = DOUBLE_CLICK_WINDOW,
    ) -> None:
        today = today or dt.date.today()
        self.scheduler = scheduler
        self.on_event = on_event
        self.window = window
        self.year = today.year
        self.month = today.month
        self.first_selected_date: dt.date | None = None
        self.hover_date: dt.date | None = None
        self._pending: _PendingClick | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> SelectionState:
        if self.first_selected_date is None:
            return SelectionState.IDLE
        return SelectionState.AWAITING_SECOND_DATE

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def date_for(self, day: int) -> dt.date:
        """Return the date of ``day`` in the displayed month."""

        return dt.date(self.year, self.month, day)

    def reset(self) -> None:
        self._cancel_pending()
        self.first_selected_date = None
        self.hover_date = None

    def _cancel_pending(self) -> None:
        if self._pending is not None and self._pending.handle is not None:
            self._pending.handle.cancel()
        self._pending = None

    # ------------------------------------------------------------------
    # Gestures
    # ------------------------------------------------------------------
    def click(self, day: int) -> None:
        clicked = self.date_for(day)
        if self._pending is not None:
            self.reset()
            logger.debug("Double click on %s", clicked)
            self.on_event(DoubleClick(clicked))
            return

        pending = _PendingClick(clicked)
        self._pending = pending
        pending.handle = self.scheduler.call_later(self.window, lambda: self._commit(pending))

    def _commit(self, pending: _PendingClick) -> None:
        if self._pending is not pending:
            # superseded by a double-click or a month change
            return
        self._pending = None

        if self.first_selected_date is None:
            self.first_selected_date = pending.date
            return

        start_date, end_date = _ordered(self.first_selected_date, pending.date)
        self.first_selected_date = None
        self.hover_date = None
        logger.debug("Range selected %s to %s", start_date, end_date)
        self.on_event(RangeSelected(start_date, end_date))

    def hover(self, day: int) -> None:
        if self.state is SelectionState.AWAITING_SECOND_DATE:
            self.hover_date = self.date_for(day)

    def leave(self) -> None:
        self.hover_date = None

    def navigate(self, delta: int) -> None:
        self.reset()
        index = self.year * 12 + (self.month - 1) + delta
        self.year, month_index = divmod(index, 12)
        self.month = month_index + 1

    # ------------------------------------------------------------------
    # Range preview
    # ------------------------------------------------------------------
    def preview_range(self) -> tuple[dt.date, dt.date] | None:
        if self.first_selected_date is None or self.hover_date is None:
            return None
        return _ordered(self.first_selected_date, self.hover_date)

    def in_preview(self, day: dt.date) -> bool:
        preview = self.preview_range()
        return preview is not None and preview[0] <= day <= preview[1]

    def snapshot(self) -> dict[str, Any]:
        preview = self.preview_range()
        return {
            "state": self.state.value,
            "pending": self.pending,
            "year": self.year,
            "month": self.month,
            "first_selected_date": (
                self.first_selected_date.isoformat() if self.first_selected_date else None
            ),
            "hover_date": self.hover_date.isoformat() if self.hover_date else None,
            "preview": [preview[0].isoformat(), preview[1].isoformat()] if preview else None,
        }


__all__ = [
    "DOUBLE_CLICK_WINDOW",
    "DoubleClick",
    "RangeSelected",
    "SelectionEvent",
    "SelectionState",
    "SelectionStateMachine",
]
