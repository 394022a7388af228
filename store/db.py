from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Database:
    conn: sqlite3.Connection
    lock: threading.Lock


_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version INTEGER NOT NULL PRIMARY KEY
        );

        CREATE TABLE IF NOT EXISTS organizer (
          organizer_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
          org_name TEXT NOT NULL,
          website_url TEXT NULL
        );

        CREATE TABLE IF NOT EXISTS venue (
          venue_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
          name TEXT NOT NULL,
          street_address TEXT NULL,
          city TEXT NULL,
          state TEXT NULL,
          postal_code TEXT NULL,
          lat REAL NULL,
          lon REAL NULL
        );

        CREATE TABLE IF NOT EXISTS event (
          event_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
          organizer_id INTEGER NULL,
          venue_id INTEGER NULL,
          title TEXT NOT NULL,
          description TEXT NULL,
          start_at TEXT NOT NULL,
          end_at TEXT NOT NULL,
          status TEXT NOT NULL
            CHECK (status IN ('scheduled', 'cancelled', 'postponed')),
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL,

          FOREIGN KEY (organizer_id) REFERENCES organizer(organizer_id),
          FOREIGN KEY (venue_id) REFERENCES venue(venue_id)
        );

        CREATE INDEX IF NOT EXISTS event_start_at_idx ON event(start_at);

        CREATE TABLE IF NOT EXISTS event_category (
          event_id INTEGER NOT NULL,
          category TEXT NOT NULL,
          PRIMARY KEY (event_id, category),
          FOREIGN KEY (event_id) REFERENCES event(event_id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS event_category_category_idx
          ON event_category(category);
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS sources (
          source_key TEXT NOT NULL PRIMARY KEY,
          source_type TEXT NOT NULL,
          url TEXT NOT NULL,
          enabled INTEGER NOT NULL DEFAULT 1,

          last_fetch_at TEXT NULL,
          last_success_at TEXT NULL,
          last_error_at TEXT NULL,
          last_error TEXT NULL,
          consecutive_failures INTEGER NOT NULL DEFAULT 0,
          last_event_count INTEGER NULL
        );
        """,
    ),
]


def open_database(path: Path) -> Database:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA busy_timeout=5000;")
    _apply_migrations(conn)
    return Database(conn=conn, lock=threading.Lock())


def _apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER NOT NULL PRIMARY KEY);"
    )
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations;"
    ).fetchone()
    current_version = int(row["v"])

    for version, sql in _MIGRATIONS:
        if version <= current_version:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_migrations(version) VALUES (?);", (version,))
        conn.commit()
