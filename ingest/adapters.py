from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from geo.geocode import Geocoder
from ingest.feed_packs import EventSourceConfig
from ingest.fetch import FetchError, fetch
from ingest.parsers.ics import parse_ics
from ingest.parsers.json import parse_json_records
from ingest.parsers.rss import parse_rss
from normalize.fallbacks import FallbackProvider
from normalize.normalize import (
    NormalizedEvent,
    normalize_ics_record,
    normalize_json_record,
    normalize_rss_record,
    substitute_placeholder_location,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceResult:
    config: EventSourceConfig
    events: list[NormalizedEvent] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def collect_ics_events(
    client: httpx.AsyncClient,
    config: EventSourceConfig,
    *,
    user_agent: str,
    geocoder: Geocoder,
    fallbacks: FallbackProvider,
) -> list[NormalizedEvent]:
    data = await fetch(client, url=config.url, user_agent=user_agent, accept="text/calendar, */*")
    events: list[NormalizedEvent] = []
    for record in parse_ics(data):
        location = substitute_placeholder_location(record.get("location"), fallbacks)
        geocoded = await geocoder.lookup(location) if location else None
        event = normalize_ics_record(config, record, location=location, geocoded=geocoded)
        if event is not None:
            events.append(event)
    return events


async def collect_rss_events(
    client: httpx.AsyncClient, config: EventSourceConfig, *, user_agent: str
) -> list[NormalizedEvent]:
    data = await fetch(
        client,
        url=config.url,
        user_agent=user_agent,
        accept="application/rss+xml, application/xml, text/xml, */*",
    )
    events: list[NormalizedEvent] = []
    for record in parse_rss(data):
        event = normalize_rss_record(config, record)
        if event is not None:
            events.append(event)
    return events


async def collect_json_events(
    client: httpx.AsyncClient,
    config: EventSourceConfig,
    *,
    user_agent: str,
    fallbacks: FallbackProvider,
) -> list[NormalizedEvent]:
    data = await fetch(client, url=config.url, user_agent=user_agent, accept="application/json")
    events: list[NormalizedEvent] = []
    for record in parse_json_records(data):
        event = normalize_json_record(config, record, fallbacks)
        if event is not None:
            events.append(event)
    return events


async def collect_source_events(
    client: httpx.AsyncClient,
    config: EventSourceConfig,
    *,
    user_agent: str,
    geocoder: Geocoder,
    fallbacks: FallbackProvider,
) -> list[NormalizedEvent]:
    if not config.enabled:
        return []
    if config.source_type == "ics":
        return await collect_ics_events(
            client, config, user_agent=user_agent, geocoder=geocoder, fallbacks=fallbacks
        )
    if config.source_type == "rss":
        return await collect_rss_events(client, config, user_agent=user_agent)
    if config.source_type == "json":
        return await collect_json_events(
            client, config, user_agent=user_agent, fallbacks=fallbacks
        )
    return []


async def _collect_one(
    client: httpx.AsyncClient,
    config: EventSourceConfig,
    *,
    user_agent: str,
    geocoder: Geocoder,
    fallbacks: FallbackProvider,
) -> SourceResult:
    try:
        events = await collect_source_events(
            client, config, user_agent=user_agent, geocoder=geocoder, fallbacks=fallbacks
        )
    except FetchError as e:
        logger.error("Failed to collect %s: %s", config.key, e)
        return SourceResult(config=config, error=f"http_{e.status_code}")
    except Exception as e:
        logger.exception("Failed to collect %s", config.key)
        return SourceResult(config=config, error=e.__class__.__name__)

    logger.info("Fetched %d events from %s", len(events), config.key)
    return SourceResult(config=config, events=events)


async def collect_all_sources(
    client: httpx.AsyncClient,
    configs: list[EventSourceConfig],
    *,
    user_agent: str,
    geocoder: Geocoder,
    fallbacks: FallbackProvider,
) -> list[SourceResult]:
    """Run every enabled adapter concurrently; a failing source yields no events."""
    enabled = [c for c in configs if c.enabled]
    return list(
        await asyncio.gather(
            *(
                _collect_one(
                    client, c, user_agent=user_agent, geocoder=geocoder, fallbacks=fallbacks
                )
                for c in enabled
            )
        )
    )
