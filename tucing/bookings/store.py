"""Booking persistence with a remote relational store and a local fallback."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from .database import (
    get_connection,
    get_value,
    initialize_bookings_table,
    initialize_key_value_store,
    set_value,
)
from .models import Booking, StoreError, new_booking_id

logger = logging.getLogger(__name__)

STORAGE_KEY = "tucing_cat_bookings"

LOAD_FAILED = "Failed to load bookings. Please try again."
ADD_FAILED = "Failed to add booking. Please try again."
UPDATE_FAILED = "Failed to update booking. Please try again."
DELETE_FAILED = "Failed to delete booking. Please try again."
IMPORT_FAILED = "Failed to import bookings to the database. Please try again."


class BookingBackend(Protocol):
    def list(self) -> list[Booking]: ...

    def create(self, booking: Booking) -> Booking: ...

    def update(self, booking: Booking) -> Booking: ...

    def delete(self, booking_id: str) -> None: ...


def dumps_bookings(bookings: list[Booking], *, indent: int | None = None) -> str:
    return json.dumps([booking.to_dict() for booking in bookings], indent=indent)


def loads_bookings(payload: str) -> list[Booking]:
    """Parse a JSON array of bookings, raising ``ValueError`` when malformed."""

    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of bookings")
    try:
        return [Booking.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Malformed booking record: {exc}") from exc


class SqlBookingBackend:
    """Relational ``bookings`` table, the shared store of record."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        try:
            self.conn = get_connection(path)
            initialize_bookings_table(self.conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open booking database {path}: {exc}") from exc

    def list(self) -> list[Booking]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM bookings ORDER BY start_date DESC"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return [Booking.from_row(row) for row in rows]

    def get(self, booking_id: str) -> Booking | None:
        row = self.conn.execute(
            "SELECT * FROM bookings WHERE id = ?", (booking_id,)
        ).fetchone()
        return Booking.from_row(row) if row else None

    def create(self, booking: Booking) -> Booking:
        row = booking.to_row()
        try:
            self.conn.execute(
                """
                INSERT INTO bookings(
                    id, service_type, cat_name, owner_name, start_date, end_date,
                    notes, total_fees, contact_number
                ) VALUES (
                    :id, :service_type, :cat_name, :owner_name, :start_date, :end_date,
                    :notes, :total_fees, :contact_number
                )
                """,
                row,
            )
            self.conn.commit()
            stored = self.get(booking.id)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return stored or booking

    def update(self, booking: Booking) -> Booking:
        try:
            self.conn.execute(
                """
                UPDATE bookings SET
                    service_type = :service_type,
                    cat_name = :cat_name,
                    owner_name = :owner_name,
                    start_date = :start_date,
                    end_date = :end_date,
                    notes = :notes,
                    total_fees = :total_fees,
                    contact_number = :contact_number
                WHERE id = :id
                """,
                booking.to_row(),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        return booking

    def delete(self, booking_id: str) -> None:
        try:
            self.conn.execute("DELETE FROM bookings WHERE id = ?", (booking_id,))
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def close(self) -> None:
        self.conn.close()


class LocalBookingBackend:
    """A single keyed JSON blob in a local key-value area."""

    def __init__(self, path: str | Path = ":memory:", key: str = STORAGE_KEY) -> None:
        self.conn = get_connection(path)
        self.key = key
        self.pending_key = f"{key}_pending"
        initialize_key_value_store(self.conn)

    def read_raw(self) -> str | None:
        return get_value(self.conn, self.key)

    def write_raw(self, payload: str) -> None:
        set_value(self.conn, self.key, payload)

    def load(self) -> list[Booking]:
        """Return the cached bookings; a malformed blob counts as empty."""

        payload = self.read_raw()
        if not payload:
            return []
        try:
            return loads_bookings(payload)
        except ValueError:
            logger.exception("Failed to parse bookings from local storage")
            return []

    def load_pending(self) -> dict[str, Booking | None]:
        """Writes that never reached the remote store, by booking id.

        ``None`` marks a delete. A malformed journal counts as empty.
        """

        payload = get_value(self.conn, self.pending_key)
        if not payload:
            return {}
        try:
            data = json.loads(payload)
            return {
                str(booking_id): Booking.from_dict(item) if item is not None else None
                for booking_id, item in data.items()
            }
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.exception("Failed to parse pending writes from local storage")
            return {}

    def save_pending(self, pending: Mapping[str, Booking | None]) -> None:
        set_value(
            self.conn,
            self.pending_key,
            json.dumps(
                {
                    booking_id: booking.to_dict() if booking is not None else None
                    for booking_id, booking in pending.items()
                }
            ),
        )

    def save(self, bookings: list[Booking]) -> None:
        self.write_raw(dumps_bookings(bookings))

    def list(self) -> list[Booking]:
        return self.load()

    def create(self, booking: Booking) -> Booking:
        self.save([*self.load(), booking])
        return booking

    def update(self, booking: Booking) -> Booking:
        self.save([booking if b.id == booking.id else b for b in self.load()])
        return booking

    def delete(self, booking_id: str) -> None:
        self.save([b for b in self.load() if b.id != booking_id])

    def close(self) -> None:
        self.conn.close()


class BookingStore:
    """The bookings the dashboard works with.

    ``bookings`` is the in-memory snapshot. Each change is sent to the remote
    backend when one is configured and always mirrored into the local blob.
    A remote failure never reaches the caller: the change is applied locally,
    journaled in ``pending`` and ``warning`` carries a message for the user.
    Journaled changes are replayed before the next remote read or write, so a
    reload never drops them.
    """

    def __init__(
        self,
        local: LocalBookingBackend,
        remote: BookingBackend | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.bookings: list[Booking] = []
        self.warning: str | None = None
        self.loaded = False
        self.lock = threading.RLock()
        self.pending: dict[str, Booking | None] = local.load_pending() if remote else {}

    @property
    def is_local_only(self) -> bool:
        return self.remote is None

    def report_failure(self, message: str, exc: Exception) -> None:
        logger.warning("%s (%s)", message, exc)
        self.warning = message

    def _mirror(self) -> None:
        self.local.save(self.bookings)

    def _journal(self, changes: Mapping[str, Booking | None]) -> None:
        self.pending.update(changes)
        self.local.save_pending(self.pending)

    def _replay_pending(self, remote: BookingBackend) -> None:
        """Push journaled changes to ``remote``, oldest first."""

        if not self.pending:
            return
        existing = {b.id for b in remote.list()}
        for booking_id, booking in list(self.pending.items()):
            if booking is None:
                remote.delete(booking_id)
            elif booking_id in existing:
                remote.update(booking)
            else:
                remote.create(booking)
            del self.pending[booking_id]
            self.local.save_pending(self.pending)
        logger.info("Replayed local changes to the remote store")

    def _write_remote(
        self,
        message: str,
        change: Mapping[str, Booking | None],
        write: Callable[[BookingBackend], Any],
    ) -> Any:
        if self.remote is None:
            return None
        try:
            self._replay_pending(self.remote)
            return write(self.remote)
        except StoreError as exc:
            self.report_failure(message, exc)
            self._journal(change)
            return None

    def take_warning(self) -> str | None:
        with self.lock:
            warning, self.warning = self.warning, None
        return warning

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def load(self) -> list[Booking]:
        with self.lock:
            if self.remote is None:
                self.bookings = self.local.load()
            else:
                try:
                    self._replay_pending(self.remote)
                    self.bookings = self.remote.list()
                except StoreError as exc:
                    self.report_failure(LOAD_FAILED, exc)
                    self.bookings = self.local.load()
                else:
                    self._mirror()
            self.loaded = True
            return list(self.bookings)

    def list(self) -> list[Booking]:
        with self.lock:
            if not self.loaded:
                self.load()
            return list(self.bookings)

    def get(self, booking_id: str) -> Booking | None:
        for booking in self.list():
            if booking.id == booking_id:
                return booking
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(self, booking: Booking) -> Booking:
        with self.lock:
            if self.get(booking.id) is not None:
                fresh_id = new_booking_id()
                logger.info("Booking id %s is taken, using %s", booking.id, fresh_id)
                booking = booking.with_changes(id=fresh_id)
            stored = self._write_remote(
                ADD_FAILED, {booking.id: booking}, lambda remote: remote.create(booking)
            )
            stored = stored or booking
            self.bookings.append(stored)
            self._mirror()
        logger.info("Created %s booking %s", stored.service_type.value, stored.id)
        return stored

    def update(self, booking: Booking) -> Booking:
        with self.lock:
            self.list()
            self._write_remote(
                UPDATE_FAILED, {booking.id: booking}, lambda remote: remote.update(booking)
            )
            self.bookings = [booking if b.id == booking.id else b for b in self.bookings]
            self._mirror()
        logger.info("Updated booking %s", booking.id)
        return booking

    def delete(self, booking_id: str) -> None:
        with self.lock:
            self.list()
            self._write_remote(
                DELETE_FAILED, {booking_id: None}, lambda remote: remote.delete(booking_id)
            )
            before = len(self.bookings)
            self.bookings = [b for b in self.bookings if b.id != booking_id]
            if len(self.bookings) != before:
                self._mirror()
                logger.info("Deleted booking %s", booking_id)

    # ------------------------------------------------------------------
    # Backup, export and import
    # ------------------------------------------------------------------
    def save_to_storage(self) -> bool:
        try:
            with self.lock:
                self._mirror()
        except sqlite3.Error:
            logger.exception("Failed to save bookings to local storage")
            return False
        return True

    def export_bookings(self) -> str:
        return dumps_bookings(self.list(), indent=2)

    @staticmethod
    def _replace_remote(remote: BookingBackend, bookings: list[Booking]) -> None:
        """Make the remote table hold exactly ``bookings``."""

        existing = {b.id for b in remote.list()}
        wanted = {b.id for b in bookings}
        for booking_id in existing - wanted:
            remote.delete(booking_id)
        for booking in bookings:
            if booking.id in existing:
                remote.update(booking)
            else:
                remote.create(booking)

    def import_bookings(self, payload: str) -> bool:
        """Replace the working set with ``payload``; False if it cannot be parsed.

        With a remote backend the imported set also replaces the remote
        table. If that fails the import still applies locally, is journaled
        and a warning is left, as for any other write.
        """

        try:
            bookings = loads_bookings(payload)
        except ValueError:
            logger.exception("Failed to import bookings")
            return False
        if len({b.id for b in bookings}) != len(bookings):
            logger.error("Failed to import bookings: duplicate ids")
            return False
        with self.lock:
            if self.remote is not None:
                wanted = {b.id for b in bookings}
                dropped = {b.id: None for b in self.list() if b.id not in wanted}
                try:
                    self._replace_remote(self.remote, bookings)
                except StoreError as exc:
                    self.report_failure(IMPORT_FAILED, exc)
                    self._journal({**dropped, **{b.id: b for b in bookings}})
                else:
                    self.pending.clear()
                    self.local.save_pending(self.pending)
            self.bookings = bookings
            self.loaded = True
            self._mirror()
        logger.info("Imported %d bookings", len(bookings))
        return True

    def close(self) -> None:
        self.local.close()
        close = getattr(self.remote, "close", None)
        if close is not None:
            close()


def build_store(settings: Mapping[str, Any]) -> BookingStore:
    """Create the store selected by ``BOOKING_BACKEND``.

    ``remote`` without a ``REMOTE_DATABASE_PATH`` runs local only, as does a
    remote database that cannot be opened.
    """

    local = LocalBookingBackend(settings.get("LOCAL_STORAGE_PATH") or ":memory:")
    backend = (settings.get("BOOKING_BACKEND") or "local").lower()
    if backend == "local":
        return BookingStore(local)
    if backend != "remote":
        raise ValueError(f"Unknown booking backend {backend!r}")

    remote_path = settings.get("REMOTE_DATABASE_PATH")
    if not remote_path:
        logger.info("No remote database configured, using local storage")
        return BookingStore(local)
    try:
        remote = SqlBookingBackend(remote_path)
    except StoreError as exc:
        store = BookingStore(local)
        store.report_failure(LOAD_FAILED, exc)
        return store
    return BookingStore(local, remote)


__all__ = [
    "BookingBackend",
    "BookingStore",
    "IMPORT_FAILED",
    "LocalBookingBackend",
    "STORAGE_KEY",
    "SqlBookingBackend",
    "build_store",
    "dumps_bookings",
    "loads_bookings",
]
