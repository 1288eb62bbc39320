"""Document store backed by a Supabase (Postgres) ``documents`` table.

Reads go through PostgREST directly. Commits go through the
``squadpool_commit`` Postgres function (see ``backend/sql``), which checks the
expected versions and applies every write inside one SQL transaction, so a
commit is all-or-nothing. A version mismatch is raised by the function with
SQLSTATE 40001 and surfaces here as ``TransactionConflict``.
"""

from __future__ import annotations

import logging
from typing import Any

from postgrest.exceptions import APIError

from squadpool import db
from squadpool.errors import StoreError, TransactionConflict
from squadpool.store.base import DocKey, DocumentSnapshot, DocumentStore, Write

logger = logging.getLogger(__name__)

_PAGE_SIZE = 1000
_CONFLICT_CODE = "40001"


class SupabaseStore(DocumentStore):

    def read_versioned(self, collection: str, doc_id: str) -> tuple[int, dict[str, Any] | None]:
        rows = (
            db.table()
            .select("data, version, deleted")
            .eq("collection", collection)
            .eq("doc_id", doc_id)
            .execute()
            .data
        )
        if not rows:
            return 0, None
        row = rows[0]
        return int(row["version"]), (None if row.get("deleted") else row["data"])

    def get_all(self, collection: str, doc_ids) -> dict[str, dict[str, Any] | None]:
        ids = list(doc_ids)
        out: dict[str, dict[str, Any] | None] = {doc_id: None for doc_id in ids}
        for start in range(0, len(ids), _PAGE_SIZE):
            chunk = ids[start:start + _PAGE_SIZE]
            rows = (
                db.table()
                .select("doc_id, data")
                .eq("collection", collection)
                .eq("deleted", False)
                .in_("doc_id", chunk)
                .execute()
                .data
            )
            for row in rows:
                out[row["doc_id"]] = row["data"]
        return out

    def list(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        out: list[DocumentSnapshot] = []
        offset = 0
        while True:
            page = _PAGE_SIZE if limit is None else min(_PAGE_SIZE, limit - len(out))
            q = (
                db.table()
                .select("doc_id, data")
                .eq("collection", collection)
                .eq("deleted", False)
            )
            # Equality on top-level JSON fields; values compared as text.
            for key, value in (where or {}).items():
                q = q.eq(f"data->>{key}", value)
            rows = q.order("doc_id").range(offset, offset + page - 1).execute().data
            out.extend(DocumentSnapshot(r["doc_id"], r["data"]) for r in rows)
            offset += len(rows)
            if len(rows) < page or (limit is not None and len(out) >= limit):
                return out

    def commit(
        self,
        writes: list[Write],
        expected_versions: dict[DocKey, int] | None = None,
    ) -> None:
        if not writes and not expected_versions:
            return
        params = {
            "p_writes": [
                {
                    "collection": w.collection,
                    "doc_id": w.doc_id,
                    "data": w.data,
                    "merge": w.merge,
                    "delete": w.is_delete,
                }
                for w in writes
            ],
            "p_expected": [
                {"collection": c, "doc_id": d, "version": v}
                for (c, d), v in (expected_versions or {}).items()
            ],
        }
        try:
            db.rpc(db.COMMIT_FUNCTION, params)
        except APIError as e:
            if e.code == _CONFLICT_CODE:
                raise TransactionConflict(e.message or "document version conflict") from e
            logger.error("Commit of %d write(s) failed: %s", len(writes), e.message)
            raise StoreError(e.message or "commit failed") from e
