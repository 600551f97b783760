"""Catalog store backed by a Supabase / PostgREST REST endpoint."""

import logging
import re
from typing import Any

import httpx

from tally.errors import InvalidInput, StorageError, StorageUnavailable
from tally.store import register_store
from tally.store.base import CatalogStore, Order, Row

logger = logging.getLogger(__name__)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return _format_value(value)


def filter_params(filters: Row | None) -> dict[str, str]:
    """Translate equality filters into PostgREST query parameters."""
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, (list, tuple, set, frozenset)):
            params[column] = "in.(" + ",".join(_quote(v) for v in value) + ")"
        else:
            params[column] = f"eq.{_format_value(value)}"
    return params


def order_param(order: Order) -> str:
    return ",".join(f"{column}.{'desc' if descending else 'asc'}" for column, descending in order)


@register_store
class PostgrestStore(CatalogStore):
    """Catalog store talking to the REST interface of a Supabase project.

    Filters become ``col=eq.value`` / ``col=in.(a,b)`` / ``col=is.null``
    query parameters, and upserts use PostgREST's merge-duplicates
    resolution on the given conflict columns.

    Change notifications fire for writes made through this client only.

    Expected URL format:
        https://<project>.supabase.co
        https://<host>/rest/v1
    """

    URL_PATTERN = re.compile(r"^https?://[^/\s]+")

    EXAMPLE_URL = "https://example.supabase.co"

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__()
        rest_url = base_url.rstrip("/")
        if not rest_url.endswith("/rest/v1"):
            rest_url += "/rest/v1"
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self.rest_url = rest_url
        self._client = httpx.Client(
            base_url=rest_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def can_open(cls, url: str) -> bool:
        return bool(cls.URL_PATTERN.match(url))

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "PostgrestStore":
        return cls(url, **options)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PostgrestStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, table: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, f"/{table}", **kwargs)
        except httpx.RequestError as e:
            raise StorageUnavailable(f"Catalog store unreachable: {e}") from e

        if response.status_code >= 500:
            raise StorageUnavailable(
                f"Catalog store error on {method} {table}: HTTP {response.status_code}"
            )
        if response.status_code >= 400:
            raise StorageError(
                f"Catalog store rejected {method} {table}: "
                f"HTTP {response.status_code} {response.text}"
            )
        return response

    def get(self, table: str, filters: Row | None = None, order: Order | None = None) -> list[Row]:
        params = {"select": "*", **filter_params(filters)}
        if order:
            params["order"] = order_param(order)
        return self._request("GET", table, params=params).json()

    def upsert(self, table: str, row: Row, conflict_keys: tuple[str, ...]) -> Row:
        if not conflict_keys:
            raise InvalidInput("Upsert needs at least one conflict key.")
        response = self._request(
            "POST",
            table,
            params={"on_conflict": ",".join(conflict_keys)},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        self._notify(table)
        return self._first(response, row)

    def insert(self, table: str, row: Row) -> Row:
        payload = {k: v for k, v in row.items() if not (k == "id" and v is None)}
        response = self._request(
            "POST",
            table,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        self._notify(table)
        return self._first(response, payload)

    def delete(self, table: str, filters: Row) -> int:
        if not filters:
            raise InvalidInput("Refusing to delete without a filter.")
        response = self._request(
            "DELETE",
            table,
            params=filter_params(filters),
            headers={"Prefer": "return=representation"},
        )
        removed = len(response.json() or [])
        if removed:
            self._notify(table)
        return removed

    @staticmethod
    def _first(response: httpx.Response, fallback: Row) -> Row:
        if not response.content:
            return dict(fallback)
        data = response.json()
        if isinstance(data, list):
            return data[0] if data else dict(fallback)
        return data
