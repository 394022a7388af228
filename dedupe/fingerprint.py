"""Fingerprint-based duplicate filtering.

Only stored events starting inside the lookback window are compared
against. An older stored event with the same title and start is not seen,
so re-ingesting it inserts a second row. This bounds the comparison query.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from normalize.normalize import NormalizedEvent, parse_iso, to_iso_utc
from store.db import Database
from store.repo import select_event_starts_since


DEFAULT_LOOKBACK_DAYS = 30


def make_fingerprint(title: str, start: datetime | str) -> str:
    if isinstance(start, datetime):
        iso = to_iso_utc(start)
    else:
        parsed = parse_iso(start)
        iso = to_iso_utc(parsed) if parsed is not None else str(start)
    return f"{title.strip().lower()}|{iso}"


def lookback_cutoff(lookback_days: int, now: datetime | None = None) -> datetime:
    current = now if now is not None else datetime.now(tz=UTC)
    return current - timedelta(days=lookback_days)


def load_existing_fingerprints(
    db: Database,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    *,
    now: datetime | None = None,
) -> set[str]:
    since_iso = to_iso_utc(lookback_cutoff(lookback_days, now))
    return {
        make_fingerprint(title, start_at)
        for title, start_at in select_event_starts_since(db, since_iso)
    }


def dedupe_events(
    events: Iterable[NormalizedEvent], existing_fingerprints: set[str]
) -> list[NormalizedEvent]:
    """Drop events already stored or seen earlier in the batch; first one wins."""
    seen = set(existing_fingerprints)
    unique: list[NormalizedEvent] = []
    for event in events:
        token = make_fingerprint(event.title, event.start)
        if token in seen:
            continue
        seen.add(token)
        unique.append(event)
    return unique
