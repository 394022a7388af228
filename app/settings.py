from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_path: Path = Field(default=Path("data/events.db"), validation_alias="DB_PATH")
    feeds_dir: Path = Field(default=Path("feeds"), validation_alias="FEEDS_DIR")

    poll_minutes: int = Field(default=15, ge=1, validation_alias="INGEST_POLL_MINUTES")
    lookback_days: int = Field(
        default=30, ge=1, validation_alias="INGEST_LOOKBACK_DAYS"
    )

    user_agent: str = Field(
        default="event-feed-ingest/0.1", validation_alias="USER_AGENT"
    )

    geocoder: Literal["nominatim", "none"] = Field(
        default="nominatim", validation_alias="GEOCODER"
    )
    geocode_domain: str = Field(
        default="nominatim.openstreetmap.org", validation_alias="GEOCODE_DOMAIN"
    )
    geocode_scheme: Literal["https", "http"] = Field(
        default="https", validation_alias="GEOCODE_SCHEME"
    )
    # The public Nominatim endpoint allows one request per second.
    geocode_min_delay_seconds: float = Field(
        default=1.0, ge=0, validation_alias="GEOCODE_MIN_DELAY_SECONDS"
    )
    # 0 keeps every lookup for the life of the process.
    geocode_cache_size: int = Field(
        default=2048, ge=0, validation_alias="GEOCODE_CACHE_SIZE"
    )

    fallback_mode: Literal["off", "random"] = Field(
        default="off", validation_alias="FALLBACK_MODE"
    )
    fallback_seed: int | None = Field(default=None, validation_alias="FALLBACK_SEED")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
