from __future__ import annotations

import calendar
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import feedparser


def _entry_datetime(entry: dict, key: str) -> str | None:
    value = entry.get(key)
    if value:
        try:
            return (
                parsedate_to_datetime(value)
                .astimezone(tz=UTC)
                .isoformat()
                .replace("+00:00", "Z")
            )
        except (TypeError, ValueError):
            pass
    # feedparser normalizes ISO-8601 and other date formats into a UTC struct_time.
    parsed = entry.get(f"{key}_parsed")
    if parsed:
        return (
            datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC)
            .isoformat()
            .replace("+00:00", "Z")
        )
    return None


def parse_rss(data: bytes) -> list[dict]:
    parsed = feedparser.parse(data)
    records: list[dict] = []
    for entry in parsed.entries:
        content = None
        if "content" in entry and entry["content"]:
            content = entry["content"][0].get("value")

        categories = [
            str(tag.get("term"))
            for tag in (entry.get("tags") or [])
            if tag.get("term")
        ]

        records.append(
            {
                "id": entry.get("id") or entry.get("guid"),
                "link": entry.get("link"),
                "title": entry.get("title", ""),
                "summary": entry.get("summary", ""),
                "content": content,
                "published": _entry_datetime(entry, "published")
                or _entry_datetime(entry, "updated"),
                "categories": categories,
            }
        )
    return records
