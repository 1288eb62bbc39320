"""In-process document store used for tests, dry runs and local replays."""

from __future__ import annotations

import copy
import threading
from typing import Any

from squadpool.errors import TransactionConflict
from squadpool.store.base import DocKey, DocumentSnapshot, DocumentStore, Write, apply_write


class MemoryStore(DocumentStore):

    def __init__(self) -> None:
        self._docs: dict[DocKey, tuple[int, dict[str, Any]]] = {}
        self._versions: dict[DocKey, int] = {}
        self._lock = threading.RLock()

    def read_versioned(self, collection: str, doc_id: str) -> tuple[int, dict[str, Any] | None]:
        with self._lock:
            key = (collection, doc_id)
            entry = self._docs.get(key)
            if entry is None:
                return self._versions.get(key, 0), None
            version, data = entry
            return version, copy.deepcopy(data)

    def list(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        with self._lock:
            out: list[DocumentSnapshot] = []
            for (coll, doc_id), (_, data) in sorted(self._docs.items()):
                if coll != collection:
                    continue
                if where and any(data.get(k) != v for k, v in where.items()):
                    continue
                out.append(DocumentSnapshot(doc_id, copy.deepcopy(data)))
                if limit is not None and len(out) >= limit:
                    break
            return out

    def commit(
        self,
        writes: list[Write],
        expected_versions: dict[DocKey, int] | None = None,
    ) -> None:
        with self._lock:
            for key, expected in (expected_versions or {}).items():
                if self._versions.get(key, 0) != expected:
                    raise TransactionConflict(f"{key[0]}/{key[1]} was modified concurrently")

            staged: dict[DocKey, dict[str, Any] | None] = {}
            for write in writes:
                current = staged[write.key] if write.key in staged else self.get_raw(write.key)
                staged[write.key] = apply_write(current, write)

            for key, data in staged.items():
                version = self._versions.get(key, 0) + 1
                self._versions[key] = version
                if data is None:
                    self._docs.pop(key, None)
                else:
                    self._docs[key] = (version, data)

    def get_raw(self, key: DocKey) -> dict[str, Any] | None:
        entry = self._docs.get(key)
        return entry[1] if entry else None

    def count(self, collection: str) -> int:
        with self._lock:
            return sum(1 for coll, _ in self._docs if coll == collection)
