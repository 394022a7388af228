from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING

from store.db import Database
from store.repo import insert_event_category_rows, insert_event_rows

if TYPE_CHECKING:
    from resolve.resolver import PendingInsert


@dataclass(frozen=True)
class InsertResult:
    events_inserted: int
    categories_inserted: int


def write_pending(db: Database, pending: list[PendingInsert]) -> InsertResult:
    """Bulk-insert events, then their category rows, in one transaction.

    Any store error rolls the whole write back and is re-raised.
    """
    if not pending:
        return InsertResult(events_inserted=0, categories_inserted=0)

    with db.lock:
        try:
            event_ids = insert_event_rows(db.conn, [p.payload for p in pending])
            category_rows: list[tuple[int, str]] = []
            for event_id, item in zip(event_ids, pending, strict=True):
                for category in sorted(set(item.categories)):
                    category_rows.append((event_id, category))
            categories_inserted = insert_event_category_rows(db.conn, category_rows)
            db.conn.commit()
        except sqlite3.Error:
            db.conn.rollback()
            raise

    return InsertResult(
        events_inserted=len(event_ids), categories_inserted=categories_inserted
    )
