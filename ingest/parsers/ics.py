from __future__ import annotations

from datetime import date, datetime

from icalendar import Calendar


def extract_text(value: object) -> str | None:
    """Read a property that may be a plain string or a wrapped value."""
    if value is None:
        return None
    if isinstance(value, str):
        return str(value)
    if isinstance(value, dict):
        inner = value.get("val")
        return inner if isinstance(inner, str) else None
    return None


def extract_organizer(value: object) -> str | None:
    """Organizer name from a CN parameter, else the bare address."""
    if value is None:
        return None
    params = getattr(value, "params", None)
    if params is None and isinstance(value, dict):
        params = value.get("params")
    if params:
        cn = params.get("CN")
        if isinstance(cn, str) and cn.strip():
            return cn.strip()

    text = extract_text(value)
    if text is None:
        return None
    if text.lower().startswith("mailto:"):
        text = text[len("mailto:") :]
    return text.strip() or None


def extract_categories(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            out.extend(extract_categories(item))
        return out
    cats = getattr(value, "cats", None)
    if cats is not None:
        return [str(c) for c in cats if str(c).strip()]
    text = extract_text(value)
    if text is None:
        return [str(value)]
    return [part for part in text.split(",") if part.strip()]


def _when(component, key: str) -> datetime | date | None:
    prop = component.get(key)
    if prop is None:
        return None
    value = getattr(prop, "dt", None)
    if isinstance(value, (datetime, date)):
        return value
    return None


def parse_ics(data: bytes) -> list[dict]:
    cal = Calendar.from_ical(data)
    records: list[dict] = []
    for component in cal.walk("VEVENT"):
        start = _when(component, "DTSTART")
        end = _when(component, "DTEND")
        if end is None and start is not None:
            duration = component.get("DURATION")
            delta = getattr(duration, "dt", None)
            if delta is not None:
                end = start + delta

        records.append(
            {
                "uid": extract_text(component.get("UID")),
                "summary": extract_text(component.get("SUMMARY")),
                "description": extract_text(component.get("DESCRIPTION")),
                "location": extract_text(component.get("LOCATION")),
                "organizer": extract_organizer(component.get("ORGANIZER")),
                "categories": extract_categories(component.get("CATEGORIES")),
                "status": extract_text(component.get("STATUS")),
                "start": start,
                "end": end,
            }
        )
    return records
