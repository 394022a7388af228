from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta

from ingest.feed_packs import EventSourceConfig
from normalize.fallbacks import (
    CATEGORY_POOL,
    PLACEHOLDER_ORGANIZERS,
    PLACEHOLDER_VENUES,
    STATUS_POOL,
    FallbackProvider,
)
from normalize.normalize import NormalizedEvent, normalize_category, to_iso_utc
from store.db import Database
from store.repo import insert_organizers, insert_venues, select_organizers, select_venues


logger = logging.getLogger(__name__)

FALLBACK_CATEGORY_COUNT = 2


def normalize_name(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().lower()


@dataclass(frozen=True)
class PendingInsert:
    normalized: NormalizedEvent
    config: EventSourceConfig
    payload: dict
    categories: list[str]


class LookupContext:
    """Name -> id maps for one ingestion cycle.

    Maps are loaded once per cycle and updated in place as reference rows
    are inserted, so later events in the same batch reuse earlier rows.
    """

    def __init__(
        self,
        db: Database,
        *,
        organizer_map: dict[str, int],
        venue_map: dict[str, int],
        fallbacks: FallbackProvider,
    ) -> None:
        self.db = db
        self.organizer_map = organizer_map
        self.venue_map = venue_map
        self.fallbacks = fallbacks
        self._placeholder_organizer_ids: list[int] | None = None
        self._placeholder_venue_ids: list[int] | None = None

    @classmethod
    def load(cls, db: Database, fallbacks: FallbackProvider) -> LookupContext:
        organizer_map: dict[str, int] = {}
        for organizer_id, name in select_organizers(db):
            organizer_map[normalize_name(name)] = organizer_id
        venue_map: dict[str, int] = {}
        for venue_id, name in select_venues(db):
            venue_map[normalize_name(name)] = venue_id
        return cls(db, organizer_map=organizer_map, venue_map=venue_map, fallbacks=fallbacks)

    def organizer_id(self, name: str | None) -> int | None:
        key = normalize_name(name)
        if not key:
            return None
        return self.organizer_map.get(key)

    def venue_id(self, name: str | None) -> int | None:
        key = normalize_name(name)
        if not key:
            return None
        return self.venue_map.get(key)

    def placeholder_organizer_ids(self) -> list[int]:
        if not self.fallbacks.enabled:
            return []
        if self._placeholder_organizer_ids is None:
            missing = [
                org
                for org in PLACEHOLDER_ORGANIZERS
                if normalize_name(org["org_name"]) not in self.organizer_map
            ]
            for organizer_id, name in insert_organizers(self.db, missing):
                self.organizer_map[normalize_name(name)] = organizer_id
            self._placeholder_organizer_ids = [
                self.organizer_map[key]
                for key in (normalize_name(o["org_name"]) for o in PLACEHOLDER_ORGANIZERS)
                if key in self.organizer_map
            ]
        return self._placeholder_organizer_ids

    def placeholder_venue_ids(self) -> list[int]:
        if not self.fallbacks.enabled:
            return []
        if self._placeholder_venue_ids is None:
            missing = [
                venue
                for venue in PLACEHOLDER_VENUES
                if normalize_name(venue["name"]) not in self.venue_map
            ]
            for venue_id, name in insert_venues(self.db, missing):
                self.venue_map[normalize_name(name)] = venue_id
            self._placeholder_venue_ids = [
                self.venue_map[key]
                for key in (normalize_name(v["name"]) for v in PLACEHOLDER_VENUES)
                if key in self.venue_map
            ]
        return self._placeholder_venue_ids


def _has_coordinates(event: NormalizedEvent) -> bool:
    for value in (event.venue_lat, event.venue_lon):
        if not isinstance(value, (int, float)) or math.isnan(value):
            return False
    return True


def synthesize_venue(event: NormalizedEvent, ctx: LookupContext) -> int | None:
    """Insert a venue row from geocoded event data and register it."""
    key = normalize_name(event.venue)
    if not key or not _has_coordinates(event):
        return None
    existing = ctx.venue_map.get(key)
    if existing is not None:
        return existing

    rows = insert_venues(
        ctx.db,
        [
            {
                "name": event.venue.strip() if event.venue else "Untitled Venue",
                "street_address": event.venue_street,
                "city": event.venue_city,
                "state": event.venue_state,
                "postal_code": event.venue_postal_code,
                "lat": event.venue_lat,
                "lon": event.venue_lon,
            }
        ],
    )
    for venue_id, name in rows:
        ctx.venue_map[normalize_name(name)] = venue_id
    return ctx.venue_map.get(key)


def resolve_organizer_id(
    event: NormalizedEvent, config: EventSourceConfig, ctx: LookupContext
) -> int | None:
    if config.default_organizer_id is not None:
        return config.default_organizer_id
    found = ctx.organizer_id(event.organizer)
    if found is not None:
        return found
    found = ctx.organizer_id(config.default_organizer_name)
    if found is not None:
        return found
    return ctx.fallbacks.choose(ctx.placeholder_organizer_ids())


def resolve_venue_id(
    event: NormalizedEvent, config: EventSourceConfig, ctx: LookupContext
) -> int | None:
    if config.default_venue_id is not None:
        return config.default_venue_id
    found = ctx.venue_id(event.venue)
    if found is not None:
        return found
    found = synthesize_venue(event, ctx)
    if found is not None:
        return found
    found = ctx.venue_id(config.default_venue_name)
    if found is not None:
        return found
    return ctx.fallbacks.choose(ctx.placeholder_venue_ids())


def build_payload(
    event: NormalizedEvent, config: EventSourceConfig, ctx: LookupContext
) -> dict | None:
    title = event.title.strip()
    if not title:
        return None

    end = event.end if event.end > event.start else event.start + timedelta(hours=1)

    organizer_id = resolve_organizer_id(event, config, ctx)
    if organizer_id is None:
        logger.warning("Unable to resolve organizer for event, skipping: %s", title)
        return None

    venue_id = resolve_venue_id(event, config, ctx)
    if venue_id is None:
        logger.warning("Unable to resolve venue for event, skipping: %s", title)
        return None

    status = (
        event.status
        or config.default_status
        or ctx.fallbacks.choose(STATUS_POOL)
        or "scheduled"
    )
    description = (event.description or "").strip() or None
    return {
        "organizer_id": organizer_id,
        "venue_id": venue_id,
        "title": title,
        "description": description,
        "start_at": to_iso_utc(event.start),
        "end_at": to_iso_utc(end),
        "status": status,
    }


def ensure_categories(
    event: NormalizedEvent, config: EventSourceConfig, fallbacks: FallbackProvider
) -> list[str]:
    categories = {normalize_category(c) for c in event.categories}
    categories.discard("")
    if not categories:
        categories = {normalize_category(t) for t in config.tags}
        categories.discard("")
    if not categories:
        categories = set(fallbacks.sample(CATEGORY_POOL, FALLBACK_CATEGORY_COUNT))
    return sorted(categories)


def build_pending_inserts(
    events: list[NormalizedEvent],
    config_by_key: dict[str, EventSourceConfig],
    ctx: LookupContext,
) -> list[PendingInsert]:
    """Resolve references for each event in order; unresolvable events are dropped."""
    pending: list[PendingInsert] = []
    for event in events:
        config = config_by_key.get(event.source_key)
        if config is None:
            continue
        payload = build_payload(event, config, ctx)
        if payload is None:
            continue
        pending.append(
            PendingInsert(
                normalized=event,
                config=config,
                payload=payload,
                categories=ensure_categories(event, config, ctx.fallbacks),
            )
        )
    return pending


def seed_config_references(db: Database, configs: list[EventSourceConfig]) -> tuple[int, int]:
    """Create organizer and venue rows for config default names not yet stored.

    Returns (organizers_inserted, venues_inserted).
    """
    organizers = {normalize_name(name) for _, name in select_organizers(db)}
    venues = {normalize_name(name) for _, name in select_venues(db)}
    new_organizers: list[dict] = []
    new_venues: list[dict] = []
    for config in configs:
        name = config.default_organizer_name
        if config.default_organizer_id is None and name and normalize_name(name) not in organizers:
            organizers.add(normalize_name(name))
            new_organizers.append({"org_name": name})
        name = config.default_venue_name
        if config.default_venue_id is None and name and normalize_name(name) not in venues:
            venues.add(normalize_name(name))
            new_venues.append({"name": name})

    inserted = (len(insert_organizers(db, new_organizers)), len(insert_venues(db, new_venues)))
    if any(inserted):
        logger.info("Seeded %d organizer(s) and %d venue(s) from source defaults.", *inserted)
    return inserted
