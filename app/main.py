from __future__ import annotations

import argparse
import asyncio
import logging
import signal

import httpx

from app.settings import Settings
from geo.geocode import CachedGeocoder, Geocoder, NominatimGeocoder, NullGeocoder
from ingest.feed_packs import load_source_configs
from ingest.scheduler import IngestionRunner, run_scheduler
from normalize.fallbacks import build_fallback_provider
from resolve.resolver import seed_config_references
from store.db import open_database


logger = logging.getLogger(__name__)


def build_geocoder(settings: Settings) -> Geocoder:
    if settings.geocoder == "none":
        inner: Geocoder = NullGeocoder()
    else:
        inner = NominatimGeocoder(
            user_agent=settings.user_agent,
            domain=settings.geocode_domain,
            scheme=settings.geocode_scheme,
            min_delay_seconds=settings.geocode_min_delay_seconds,
        )
    return CachedGeocoder(inner, capacity=settings.geocode_cache_size)


async def serve(settings: Settings, *, once: bool = False) -> None:
    configs = load_source_configs(settings.feeds_dir)
    if not any(c.enabled for c in configs):
        raise RuntimeError(f"no enabled event sources found in {settings.feeds_dir}")

    db = open_database(settings.db_path)
    try:
        seed_config_references(db, [c for c in configs if c.enabled])
        async with httpx.AsyncClient(follow_redirects=True) as client:
            runner = IngestionRunner(
                db=db,
                client=client,
                source_configs=configs,
                geocoder=build_geocoder(settings),
                fallbacks=build_fallback_provider(
                    settings.fallback_mode, settings.fallback_seed
                ),
                user_agent=settings.user_agent,
                lookback_days=settings.lookback_days,
            )
            if once:
                await runner.run_cycle()
                return

            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)

            logger.info(
                "Polling %d source(s) every %d minute(s) (lookback=%d days).",
                sum(1 for c in configs if c.enabled),
                settings.poll_minutes,
                settings.lookback_days,
            )
            await run_scheduler(
                runner, interval_seconds=settings.poll_minutes * 60, stop=stop
            )
            logger.info("Shutting down ingestion server...")
    finally:
        with db.lock:
            db.conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Poll event feeds into the event store")
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    args = parser.parse_args()

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(serve(settings, once=args.once))


if __name__ == "__main__":
    main()
