"""Database utilities for the booking calendar."""

from __future__ import annotations

import sqlite3
from pathlib import Path


SCHEMA_VERSION = 1


def dict_factory(cursor: sqlite3.Cursor, row: sqlite3.Row) -> dict:
    """Return rows as dictionaries rather than tuples."""

    return {description[0]: row[idx] for idx, description in enumerate(cursor.description)}


def get_connection(path: str | Path) -> sqlite3.Connection:
    """Return a SQLite connection with sensible defaults."""

    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_bookings_table(conn: sqlite3.Connection) -> None:
    """Create the relational bookings table if it does not yet exist."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS bookings (
            id TEXT PRIMARY KEY,
            service_type TEXT NOT NULL CHECK (service_type IN ('boarding', 'grooming')),
            cat_name TEXT NOT NULL,
            owner_name TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT,
            notes TEXT,
            total_fees REAL,
            contact_number TEXT,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_bookings_start_date ON bookings(start_date);
        """
    )
    set_value(conn, "schema_version", str(SCHEMA_VERSION))


def initialize_key_value_store(conn: sqlite3.Connection) -> None:
    """Create the key-value area used for locally cached blobs."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS key_value (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def set_value(conn: sqlite3.Connection, key: str, value: str) -> None:
    initialize_key_value_store(conn)
    conn.execute(
        "INSERT INTO key_value(key, value) VALUES (?, ?)\n         ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )
    conn.commit()


def get_value(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    row = conn.execute("SELECT value FROM key_value WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else default
