from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time, timedelta

from geo.geocode import GeocodeResult
from ingest.feed_packs import EventSourceConfig
from normalize.fallbacks import (
    FALLBACK_LOCATIONS,
    PLACEHOLDER_LOCATION_SENTINELS,
    FallbackProvider,
)


_WS_RE = re.compile(r"\s+")

EVENT_STATUSES = ("scheduled", "cancelled", "postponed")

ICS_DEFAULT_DURATION_MINUTES = 60
RSS_DEFAULT_DURATION_MINUTES = 120
JSON_DEFAULT_DURATION_MINUTES = 90


@dataclass(frozen=True)
class NormalizedEvent:
    source_key: str
    external_id: str
    title: str
    start: datetime
    end: datetime
    categories: frozenset[str] = frozenset()
    description: str | None = None
    organizer: str | None = None
    venue: str | None = None
    venue_lat: float | None = None
    venue_lon: float | None = None
    venue_street: str | None = None
    venue_city: str | None = None
    venue_state: str | None = None
    venue_postal_code: str | None = None
    status: str | None = None


def to_iso_utc(value: datetime) -> str:
    return value.astimezone(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: datetime | date | str | None) -> datetime | None:
    """Coerce a feed timestamp into an aware UTC datetime.

    Naive values are read as UTC and bare dates as midnight UTC.
    Unparseable input yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(tz=UTC)


def ensure_end(
    start: datetime, end: datetime | None, fallback_minutes: int | None = None
) -> datetime:
    if end is not None and end > start:
        return end
    minutes = fallback_minutes if fallback_minutes is not None else ICS_DEFAULT_DURATION_MINUTES
    return start + timedelta(minutes=minutes)


def normalize_category(value: str | None) -> str:
    if value is None:
        return ""
    return _WS_RE.sub(" ", str(value)).strip().lower()


def normalize_categories(
    values: list[str] | None, tags: list[str] | tuple[str, ...] = ()
) -> frozenset[str]:
    """Lowercase, trim and dedupe; use the config tags only when nothing is left."""
    normalized = {normalize_category(v) for v in (values or [])}
    normalized.discard("")
    if not normalized:
        normalized = {normalize_category(t) for t in tags}
        normalized.discard("")
    return frozenset(normalized)


def split_category_token(value: str) -> str:
    # "TOPIC:Music" -> "Music"
    return _WS_RE.sub(" ", value.rsplit(":", 1)[-1]).strip()


def substitute_placeholder_location(
    location: str | None, fallbacks: FallbackProvider
) -> str | None:
    if location is None:
        return None
    text = location.strip()
    if not text:
        return None
    if text.casefold() in PLACEHOLDER_LOCATION_SENTINELS:
        return fallbacks.choose(FALLBACK_LOCATIONS)
    return text


def map_ics_status(status: str | None) -> str | None:
    if not status:
        return None
    value = status.strip().lower()
    if value == "cancelled":
        return "cancelled"
    if value == "tentative":
        return "postponed"
    return "scheduled"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _duration(config: EventSourceConfig, fallback: int) -> int:
    if config.default_duration_minutes is not None:
        return config.default_duration_minutes
    return fallback


def normalize_ics_record(
    config: EventSourceConfig,
    record: dict,
    *,
    location: str | None = None,
    geocoded: GeocodeResult | None = None,
) -> NormalizedEvent | None:
    title = (record.get("summary") or "").strip()
    if not title:
        return None
    start = parse_iso(record.get("start"))
    if start is None:
        return None
    end = ensure_end(
        start,
        parse_iso(record.get("end")),
        _duration(config, ICS_DEFAULT_DURATION_MINUTES),
    )

    venue = location or config.default_venue_name
    event = NormalizedEvent(
        source_key=config.key,
        external_id=_clean(record.get("uid")) or f"{title}-{to_iso_utc(start)}",
        title=title,
        description=_clean(record.get("description")),
        start=start,
        end=end,
        categories=normalize_categories(
            [split_category_token(c) for c in record.get("categories") or []],
            config.tags,
        ),
        organizer=_clean(record.get("organizer")),
        venue=venue,
        status=map_ics_status(record.get("status")) or config.default_status,
    )
    if geocoded is None or location is None:
        return event
    return replace(
        event,
        venue_lat=geocoded.lat,
        venue_lon=geocoded.lon,
        venue_street=geocoded.street,
        venue_city=geocoded.city,
        venue_state=geocoded.state,
        venue_postal_code=geocoded.postal_code,
    )


def normalize_rss_record(config: EventSourceConfig, record: dict) -> NormalizedEvent | None:
    title = (record.get("title") or "").strip()
    if not title:
        return None
    start = parse_iso(record.get("published"))
    if start is None:
        return None
    end = ensure_end(start, None, _duration(config, RSS_DEFAULT_DURATION_MINUTES))

    external_id = (
        _clean(record.get("id"))
        or _clean(record.get("link"))
        or f"{title}-{to_iso_utc(start)}"
    )
    return NormalizedEvent(
        source_key=config.key,
        external_id=external_id,
        title=title,
        description=_clean(record.get("content")) or _clean(record.get("summary")),
        start=start,
        end=end,
        categories=normalize_categories(record.get("categories"), config.tags),
        organizer=config.default_organizer_name,
        venue=config.default_venue_name,
        status=config.default_status,
    )


def normalize_json_record(
    config: EventSourceConfig, record: dict, fallbacks: FallbackProvider
) -> NormalizedEvent | None:
    title = (record.get("title") or "").strip()
    if not title:
        return None
    start = parse_iso(record.get("start_at"))
    if start is None:
        return None
    end = ensure_end(
        start,
        parse_iso(record.get("end_at")),
        _duration(config, JSON_DEFAULT_DURATION_MINUTES),
    )

    venue = substitute_placeholder_location(record.get("venue"), fallbacks)
    return NormalizedEvent(
        source_key=config.key,
        external_id=_clean(record.get("id")) or f"{title}-{to_iso_utc(start)}",
        title=title,
        description=_clean(record.get("description")),
        start=start,
        end=end,
        categories=normalize_categories(record.get("categories"), config.tags),
        organizer=_clean(record.get("organizer")) or config.default_organizer_name,
        venue=venue or config.default_venue_name,
        status=record.get("status") or config.default_status,
    )
