"""In-process catalog store."""

import copy
import threading
from typing import Any

from tally.errors import InvalidInput
from tally.store import register_store
from tally.store.base import TABLES, CatalogStore, Order, Row


def _matches(row: Row, filters: Row | None) -> bool:
    if not filters:
        return True
    for column, expected in filters.items():
        value = row.get(column)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def _sort_rows(rows: list[Row], order: Order | None) -> list[Row]:
    # Stable sorts applied from the last key to the first
    for column, descending in reversed(order or []):
        present = [r for r in rows if r.get(column) is not None]
        missing = [r for r in rows if r.get(column) is None]
        present.sort(key=lambda r: r[column], reverse=descending)
        rows = present + missing
    return rows


@register_store
class MemoryStore(CatalogStore):
    """Catalog store holding every table in memory.

    Used by the test suite, the demo scripts and single-process deployments.
    Rows are copied on the way in and out so callers never share state with
    the store.

    Expected URL format:
        memory://
    """

    SCHEME = "memory://"

    EXAMPLE_URL = "memory://"

    def __init__(self, tables: dict[str, list[Row]] | None = None):
        super().__init__()
        self._lock = threading.Lock()
        self._tables: dict[str, list[Row]] = {name: [] for name in TABLES}
        for name, rows in (tables or {}).items():
            self._tables.setdefault(name, []).extend(copy.deepcopy(rows))

    @classmethod
    def can_open(cls, url: str) -> bool:
        return url.startswith(cls.SCHEME)

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "MemoryStore":
        return cls()

    def get(self, table: str, filters: Row | None = None, order: Order | None = None) -> list[Row]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables.get(table, []) if _matches(r, filters)]
        return _sort_rows(rows, order)

    def upsert(self, table: str, row: Row, conflict_keys: tuple[str, ...]) -> Row:
        if not conflict_keys:
            raise InvalidInput("Upsert needs at least one conflict key.")
        key = {column: row.get(column) for column in conflict_keys}
        with self._lock:
            rows = self._tables.setdefault(table, [])
            existing = next((r for r in rows if _matches(r, key)), None)
            if existing is None:
                stored = copy.deepcopy(row)
                if "id" in stored and stored["id"] is None:
                    stored["id"] = self._next_id(rows)
                rows.append(stored)
            else:
                existing.update(copy.deepcopy(row))
                stored = existing
            result = copy.deepcopy(stored)
        self._notify(table)
        return result

    def insert(self, table: str, row: Row) -> Row:
        with self._lock:
            rows = self._tables.setdefault(table, [])
            stored = copy.deepcopy(row)
            if stored.get("id") is None:
                stored["id"] = self._next_id(rows)
            elif any(r.get("id") == stored["id"] for r in rows):
                raise InvalidInput(f"Duplicate id {stored['id']} in {table}.")
            rows.append(stored)
            result = copy.deepcopy(stored)
        self._notify(table)
        return result

    def delete(self, table: str, filters: Row) -> int:
        if not filters:
            raise InvalidInput("Refusing to delete without a filter.")
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [r for r in rows if not _matches(r, filters)]
            removed = len(rows) - len(kept)
            self._tables[table] = kept
        if removed:
            self._notify(table)
        return removed

    @staticmethod
    def _next_id(rows: list[Row]) -> int:
        ids = [r["id"] for r in rows if isinstance(r.get("id"), int)]
        return max(ids, default=0) + 1
