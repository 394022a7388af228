from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

import httpx

from dedupe.fingerprint import DEFAULT_LOOKBACK_DAYS, dedupe_events, load_existing_fingerprints
from geo.geocode import Geocoder
from health.health import ensure_sources, record_fetch_error, record_fetch_success
from ingest.adapters import collect_all_sources
from ingest.feed_packs import EventSourceConfig
from normalize.fallbacks import FallbackProvider
from resolve.resolver import LookupContext, PendingInsert, build_pending_inserts
from store.db import Database


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrepareResult:
    pending: list[PendingInsert] = field(default_factory=list)
    normalized_count: int = 0
    deduped_count: int = 0


async def prepare_ingestion_run(
    db: Database,
    client: httpx.AsyncClient,
    source_configs: list[EventSourceConfig],
    *,
    geocoder: Geocoder,
    fallbacks: FallbackProvider,
    user_agent: str,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    now: datetime | None = None,
) -> PrepareResult:
    """Fetch every source, drop duplicates and resolve references.

    Source failures are contained; store errors propagate.
    """
    if not source_configs:
        return PrepareResult()

    config_by_key = {c.key: c for c in source_configs}
    ensure_sources(db, source_configs)
    results = await collect_all_sources(
        client,
        source_configs,
        user_agent=user_agent,
        geocoder=geocoder,
        fallbacks=fallbacks,
    )
    for result in results:
        if result.ok:
            record_fetch_success(
                db, source_key=result.config.key, event_count=len(result.events)
            )
        else:
            record_fetch_error(db, source_key=result.config.key, error=str(result.error))

    normalized = [event for result in results for event in result.events]
    if not normalized:
        return PrepareResult()

    existing = load_existing_fingerprints(db, lookback_days, now=now)
    deduped = dedupe_events(normalized, existing)
    if not deduped:
        return PrepareResult(normalized_count=len(normalized))

    ctx = LookupContext.load(db, fallbacks)
    pending = build_pending_inserts(deduped, config_by_key, ctx)
    return PrepareResult(
        pending=pending,
        normalized_count=len(normalized),
        deduped_count=len(deduped),
    )
