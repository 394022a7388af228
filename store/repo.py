from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from store.db import Database


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def select_event_starts_since(db: Database, since_iso: str) -> list[tuple[str, str]]:
    with db.lock:
        rows = db.conn.execute(
            "SELECT title, start_at FROM event WHERE start_at >= ?;",
            (since_iso,),
        ).fetchall()
    return [(str(r["title"]), str(r["start_at"])) for r in rows]


def select_organizers(db: Database) -> list[tuple[int, str]]:
    with db.lock:
        rows = db.conn.execute("SELECT organizer_id, org_name FROM organizer;").fetchall()
    return [(int(r["organizer_id"]), str(r["org_name"])) for r in rows]


def select_venues(db: Database) -> list[tuple[int, str]]:
    with db.lock:
        rows = db.conn.execute("SELECT venue_id, name FROM venue;").fetchall()
    return [(int(r["venue_id"]), str(r["name"])) for r in rows]


def insert_venues(db: Database, rows: list[dict]) -> list[tuple[int, str]]:
    if not rows:
        return []
    inserted: list[tuple[int, str]] = []
    with db.lock:
        try:
            for row in rows:
                out = db.conn.execute(
                    """
                    INSERT INTO venue(
                      name, street_address, city, state, postal_code, lat, lon
                    )
                    VALUES(
                      :name, :street_address, :city, :state, :postal_code, :lat, :lon
                    )
                    RETURNING venue_id, name;
                    """,
                    {
                        "name": row["name"],
                        "street_address": row.get("street_address"),
                        "city": row.get("city"),
                        "state": row.get("state"),
                        "postal_code": row.get("postal_code"),
                        "lat": row.get("lat"),
                        "lon": row.get("lon"),
                    },
                ).fetchone()
                inserted.append((int(out["venue_id"]), str(out["name"])))
            db.conn.commit()
        except sqlite3.Error:
            db.conn.rollback()
            raise
    return inserted


def insert_organizers(db: Database, rows: list[dict]) -> list[tuple[int, str]]:
    if not rows:
        return []
    inserted: list[tuple[int, str]] = []
    with db.lock:
        try:
            for row in rows:
                out = db.conn.execute(
                    """
                    INSERT INTO organizer(org_name, website_url)
                    VALUES(?, ?)
                    RETURNING organizer_id, org_name;
                    """,
                    (row["org_name"], row.get("website_url")),
                ).fetchone()
                inserted.append((int(out["organizer_id"]), str(out["org_name"])))
            db.conn.commit()
        except sqlite3.Error:
            db.conn.rollback()
            raise
    return inserted


def insert_event_rows(conn: sqlite3.Connection, payloads: list[dict]) -> list[int]:
    """Insert event rows and return their ids in input order.

    The caller holds the database lock and owns the transaction.
    """
    now_iso = _utc_now_iso()
    event_ids: list[int] = []
    for payload in payloads:
        out = conn.execute(
            """
            INSERT INTO event(
              organizer_id, venue_id, title, description, start_at, end_at, status,
              created_at, updated_at
            )
            VALUES(
              :organizer_id, :venue_id, :title, :description, :start_at, :end_at, :status,
              :created_at, :updated_at
            )
            RETURNING event_id;
            """,
            {**payload, "created_at": now_iso, "updated_at": now_iso},
        ).fetchone()
        event_ids.append(int(out["event_id"]))
    return event_ids


def insert_event_category_rows(
    conn: sqlite3.Connection, rows: list[tuple[int, str]]
) -> int:
    if not rows:
        return 0
    conn.executemany(
        "INSERT INTO event_category(event_id, category) VALUES (?, ?);",
        rows,
    )
    return len(rows)
