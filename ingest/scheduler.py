from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from dedupe.fingerprint import DEFAULT_LOOKBACK_DAYS
from geo.geocode import Geocoder
from ingest.feed_packs import EventSourceConfig
from ingest.pipeline import prepare_ingestion_run
from normalize.fallbacks import FallbackProvider
from store.db import Database
from store.writer import InsertResult, write_pending


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleResult:
    normalized_count: int
    deduped_count: int
    events_inserted: int
    categories_inserted: int
    duration_ms: int


class IngestionRunner:
    """Runs ingestion cycles, never more than one at a time."""

    def __init__(
        self,
        *,
        db: Database,
        client: httpx.AsyncClient,
        source_configs: list[EventSourceConfig],
        geocoder: Geocoder,
        fallbacks: FallbackProvider,
        user_agent: str,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        self.db = db
        self.client = client
        self.source_configs = source_configs
        self.geocoder = geocoder
        self.fallbacks = fallbacks
        self.user_agent = user_agent
        self.lookback_days = lookback_days
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def run_cycle(self) -> CycleResult | None:
        if self._in_flight:
            logger.info("Previous run still in progress; skipping tick.")
            return None
        self._in_flight = True
        started = time.monotonic()
        try:
            prepared = await prepare_ingestion_run(
                self.db,
                self.client,
                self.source_configs,
                geocoder=self.geocoder,
                fallbacks=self.fallbacks,
                user_agent=self.user_agent,
                lookback_days=self.lookback_days,
            )
            inserted = InsertResult(events_inserted=0, categories_inserted=0)
            if not prepared.normalized_count:
                logger.info("No events fetched.")
            elif not prepared.pending:
                logger.info(
                    "No new events to insert (fetched=%d, deduped=%d).",
                    prepared.normalized_count,
                    prepared.deduped_count,
                )
            else:
                inserted = write_pending(self.db, prepared.pending)

            duration_ms = int((time.monotonic() - started) * 1000)
            if inserted.events_inserted:
                logger.info(
                    "Inserted %d events (%d categories) in %dms.",
                    inserted.events_inserted,
                    inserted.categories_inserted,
                    duration_ms,
                )
            return CycleResult(
                normalized_count=prepared.normalized_count,
                deduped_count=prepared.deduped_count,
                events_inserted=inserted.events_inserted,
                categories_inserted=inserted.categories_inserted,
                duration_ms=duration_ms,
            )
        finally:
            self._in_flight = False

    async def tick(self) -> CycleResult | None:
        try:
            return await self.run_cycle()
        except Exception:
            # The next tick is the retry.
            logger.exception("Ingestion cycle failed")
            return None


async def run_scheduler(
    runner: IngestionRunner, *, interval_seconds: float, stop: asyncio.Event
) -> None:
    """Start a cycle every interval until stop is set.

    Ticks that land while a cycle is running are skipped by the runner. On
    stop, a cycle in flight is awaited rather than cancelled.
    """
    tasks: set[asyncio.Task] = set()
    while not stop.is_set():
        task = asyncio.create_task(runner.tick())
        tasks.add(task)
        task.add_done_callback(tasks.discard)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except TimeoutError:
            pass
    if tasks:
        await asyncio.gather(*tasks)
