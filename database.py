"""
Data store access for the Collection API.

Handlers never hold a global client: the app keeps one `DataStore` on
`app.state.store` and routes receive it through the `get_store` dependency.
`SupabaseStore` is the production implementation on top of supabase-py.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from fastapi import Request
from postgrest.exceptions import APIError
from supabase import Client, create_client

from config import Settings
from errors import StoreError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class DataStore(Protocol):
    def select(
        self,
        table: str,
        columns: str = "*",
        eq: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> List[Row]:
        ...

    def insert(self, table: str, rows: List[Row]) -> List[Row]:
        ...

    def update(self, table: str, values: Row, eq: Dict[str, Any]) -> List[Row]:
        ...

    def upsert(self, table: str, rows: List[Row], on_conflict: str) -> List[Row]:
        ...


class SupabaseStore:
    """DataStore backed by a Supabase (PostgREST) project."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        return cls(create_client(settings.supabase_url, settings.supabase_service_role_key))

    def _execute(self, query, table: str) -> List[Row]:
        try:
            response = query.execute()
        except APIError as e:
            logger.error("Supabase rejected query on %s: %s", table, e.message)
            raise StoreError(f"Query on {table} failed") from e
        except httpx.HTTPError as e:
            logger.error("Supabase unreachable for %s: %s", table, e)
            raise StoreError(f"Query on {table} failed") from e
        return response.data or []

    def select(self, table, columns="*", eq=None, order=None, ascending=True, limit=None):
        query = self.client.table(table).select(columns)
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        if order:
            query = query.order(order, desc=not ascending)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(query, table)

    def insert(self, table, rows):
        return self._execute(self.client.table(table).insert(rows), table)

    def update(self, table, values, eq):
        if not eq:
            raise ValueError("update requires at least one filter")
        query = self.client.table(table).update(values)
        for column, value in eq.items():
            query = query.eq(column, value)
        return self._execute(query, table)

    def upsert(self, table, rows, on_conflict):
        return self._execute(self.client.table(table).upsert(rows, on_conflict=on_conflict), table)


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def first(rows: List[Row]) -> Optional[Row]:
    return rows[0] if rows else None
