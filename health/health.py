from __future__ import annotations

from datetime import UTC, datetime

from ingest.feed_packs import EventSourceConfig
from store.db import Database


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")


def ensure_sources(db: Database, configs: list[EventSourceConfig]) -> None:
    with db.lock:
        for config in configs:
            db.conn.execute(
                """
                INSERT INTO sources(source_key, source_type, url, enabled)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(source_key) DO UPDATE SET
                  source_type = excluded.source_type,
                  url = excluded.url,
                  enabled = excluded.enabled;
                """,
                (config.key, config.source_type, config.url, 1 if config.enabled else 0),
            )
        db.conn.commit()


def record_fetch_success(db: Database, *, source_key: str, event_count: int) -> None:
    now_iso = _utc_now_iso()
    with db.lock:
        db.conn.execute(
            """
            UPDATE sources
            SET last_fetch_at = ?,
                last_success_at = ?,
                consecutive_failures = 0,
                last_error = NULL,
                last_error_at = NULL,
                last_event_count = ?
            WHERE source_key = ?;
            """,
            (now_iso, now_iso, event_count, source_key),
        )
        db.conn.commit()


def record_fetch_error(db: Database, *, source_key: str, error: str) -> int:
    """Record a failed fetch and return the new consecutive failure count."""
    now_iso = _utc_now_iso()
    with db.lock:
        row = db.conn.execute(
            "SELECT consecutive_failures FROM sources WHERE source_key = ?;",
            (source_key,),
        ).fetchone()
        if row is None:
            return 0
        failures = int(row["consecutive_failures"]) + 1
        db.conn.execute(
            """
            UPDATE sources
            SET last_fetch_at = ?,
                last_error_at = ?,
                consecutive_failures = ?,
                last_error = ?
            WHERE source_key = ?;
            """,
            (now_iso, now_iso, failures, error, source_key),
        )
        db.conn.commit()
    return failures
