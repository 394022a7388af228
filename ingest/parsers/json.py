from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, Field, TypeAdapter


class JsonEventRecord(BaseModel):
    id: str
    title: str = Field(min_length=1)
    description: str | None = None
    start_at: str
    end_at: str | None = None
    categories: list[str] = Field(default_factory=list)
    organizer: str | None = None
    venue: str | None = None
    status: Literal["scheduled", "cancelled", "postponed"] | None = None


_RECORDS = TypeAdapter(list[JsonEventRecord])


def parse_json_records(data: bytes) -> list[dict]:
    """Validate a JSON event payload; any schema violation rejects all of it."""
    doc = json.loads(data)
    if isinstance(doc, dict) and isinstance(doc.get("events"), list):
        doc = doc["events"]
    records = _RECORDS.validate_python(doc)
    return [record.model_dump() for record in records]
