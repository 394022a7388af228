from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


SOURCE_TYPES = ("ics", "rss", "json")
_STATUSES = ("scheduled", "cancelled", "postponed")


@dataclass(frozen=True)
class EventSourceConfig:
    key: str
    source_type: str
    url: str
    enabled: bool = True
    tags: tuple[str, ...] = ()
    default_duration_minutes: int | None = None
    default_status: str | None = None
    default_organizer_id: int | None = None
    default_organizer_name: str | None = None
    default_venue_id: int | None = None
    default_venue_name: str | None = None


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def source_config_from_mapping(entry: dict, *, origin: str = "<config>") -> EventSourceConfig:
    source_type = str(entry.get("type") or "").strip().lower()
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"invalid source type {source_type!r} in: {origin}")
    status = _optional_str(entry.get("default_status"))
    if status is not None and status not in _STATUSES:
        raise ValueError(f"invalid default_status {status!r} in: {origin}")
    duration = _optional_int(entry.get("default_duration_minutes"))
    if duration is not None and duration <= 0:
        raise ValueError(f"default_duration_minutes must be positive in: {origin}")

    return EventSourceConfig(
        key=str(entry["key"]),
        source_type=source_type,
        url=str(entry["url"]),
        enabled=bool(entry.get("enabled", True)),
        tags=tuple(str(t) for t in (entry.get("tags") or [])),
        default_duration_minutes=duration,
        default_status=status,
        default_organizer_id=_optional_int(entry.get("default_organizer_id")),
        default_organizer_name=_optional_str(entry.get("default_organizer_name")),
        default_venue_id=_optional_int(entry.get("default_venue_id")),
        default_venue_name=_optional_str(entry.get("default_venue_name")),
    )


def load_feed_pack_entries(feeds_dir: Path) -> dict[str, list[EventSourceConfig]]:
    packs: dict[str, list[EventSourceConfig]] = {}
    if not feeds_dir.exists():
        return packs

    seen_keys: set[str] = set()
    for path in sorted(feeds_dir.glob("*.yaml")):
        pack_id = path.stem
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        if raw is None:
            packs[pack_id] = []
            continue
        if not isinstance(raw, list):
            raise ValueError(f"invalid feed pack: {path}")

        entries: list[EventSourceConfig] = []
        for entry in raw:
            if not isinstance(entry, dict):
                raise ValueError(f"invalid feed entry in: {path}")
            config = source_config_from_mapping(entry, origin=str(path))
            if config.key in seen_keys:
                raise ValueError(f"duplicate source key {config.key!r} in: {path}")
            seen_keys.add(config.key)
            entries.append(config)

        packs[pack_id] = entries

    return packs


def load_source_configs(feeds_dir: Path) -> list[EventSourceConfig]:
    return [entry for pack in load_feed_pack_entries(feeds_dir).values() for entry in pack]
