"""Supabase client helpers and the process-wide document store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from supabase import Client, create_client

from squadpool.config import get_settings
from squadpool.errors import StoreError

if TYPE_CHECKING:
    from squadpool.store.base import DocumentStore

DOCUMENTS_TABLE = "documents"
COMMIT_FUNCTION = "squadpool_commit"

_client: Client | None = None
_store: DocumentStore | None = None


def get_client() -> Client:
    """Return a singleton Supabase client (service-role for backend workers)."""
    global _client
    if _client is None:
        s = get_settings()
        if not s.supabase_url or not s.supabase_service_role_key:
            raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase store.")
        _client = create_client(s.supabase_url, s.supabase_service_role_key)
    return _client


def table(name: str = DOCUMENTS_TABLE):
    """Return a table query builder scoped to the configured schema."""
    return get_client().schema(get_settings().supabase_schema).table(name)


def rpc(function: str, params: dict[str, Any]) -> Any:
    """Call a Postgres function in the configured schema."""
    return get_client().schema(get_settings().supabase_schema).rpc(function, params).execute().data


def get_store() -> DocumentStore:
    """Return the singleton document store selected by ``STORE_BACKEND``."""
    global _store
    if _store is None:
        backend = get_settings().store_backend
        if backend == "memory":
            from squadpool.store.memory import MemoryStore

            _store = MemoryStore()
        elif backend == "supabase":
            from squadpool.store.supabase import SupabaseStore

            _store = SupabaseStore()
        else:
            raise StoreError(f"Unknown store backend: {backend!r}")
    return _store


def set_store(store: DocumentStore | None) -> None:
    global _store
    _store = store
