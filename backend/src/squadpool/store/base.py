"""Document store contract with batched writes and optimistic transactions.

Documents are JSON objects addressed by ``(collection, doc_id)``. Every
stored document carries a monotonically increasing version; a transaction
remembers the version of each document it read and the commit is rejected
with ``TransactionConflict`` if any of them moved. ``run_transaction``
re-runs the whole closure on conflict, so closures must only touch the
store through the ``Transaction`` they are given.
"""

from __future__ import annotations

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, NamedTuple, TypeVar

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random

from squadpool.errors import TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

DocKey = tuple[str, str]


class DocumentSnapshot(NamedTuple):
    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class Write:
    collection: str
    doc_id: str
    data: dict[str, Any] | None
    merge: bool = False

    @property
    def key(self) -> DocKey:
        return (self.collection, self.doc_id)

    @property
    def is_delete(self) -> bool:
        return self.data is None

    @classmethod
    def set(cls, collection: str, doc_id: str, data: dict[str, Any]) -> "Write":
        return cls(collection, doc_id, data, merge=False)

    @classmethod
    def merge_into(cls, collection: str, doc_id: str, data: dict[str, Any]) -> "Write":
        return cls(collection, doc_id, data, merge=True)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "Write":
        return cls(collection, doc_id, None)


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested dicts merge, lists replace."""
    out = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def apply_write(current: dict[str, Any] | None, write: Write) -> dict[str, Any] | None:
    if write.is_delete:
        return None
    if write.merge and current is not None:
        return deep_merge(current, write.data or {})
    return copy.deepcopy(write.data)


@dataclass
class Transaction:
    """Read-set / write-set accumulated by one transaction attempt."""

    store: "DocumentStore"
    reads: dict[DocKey, int] = field(default_factory=dict)
    writes: list[Write] = field(default_factory=list)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        if self.writes:
            raise RuntimeError("Transaction reads must happen before writes.")
        version, data = self.store.read_versioned(collection, doc_id)
        key = (collection, doc_id)
        seen = self.reads.get(key)
        if seen is not None and seen != version:
            raise TransactionConflict(f"{collection}/{doc_id} changed during transaction")
        self.reads[key] = version
        return data

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.writes.append(Write.set(collection, doc_id, data))

    def merge(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.writes.append(Write.merge_into(collection, doc_id, data))

    def delete(self, collection: str, doc_id: str) -> None:
        self.writes.append(Write.delete(collection, doc_id))


class DocumentStore(ABC):

    @abstractmethod
    def read_versioned(self, collection: str, doc_id: str) -> tuple[int, dict[str, Any] | None]:
        """Return ``(version, data)``; missing documents are ``(0, None)``."""

    @abstractmethod
    def list(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[DocumentSnapshot]:
        """Return documents in a collection, filtered by top-level equality."""

    @abstractmethod
    def commit(
        self,
        writes: list[Write],
        expected_versions: dict[DocKey, int] | None = None,
    ) -> None:
        """Apply all writes atomically, or none of them.

        Raises ``TransactionConflict`` when a document in
        ``expected_versions`` no longer has the expected version.
        """

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        return self.read_versioned(collection, doc_id)[1]

    def get_all(self, collection: str, doc_ids: Iterable[str]) -> dict[str, dict[str, Any] | None]:
        return {doc_id: self.get(collection, doc_id) for doc_id in doc_ids}

    def new_id(self) -> str:
        return uuid.uuid4().hex[:20]

    def commit_batched(self, writes: list[Write], batch_size: int) -> int:
        """Commit ``writes`` in sequential full sub-batches. Returns the batch count."""
        batches = 0
        for start in range(0, len(writes), batch_size):
            self.commit(writes[start:start + batch_size])
            batches += 1
        return batches

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int = 5) -> T:
        """Run ``fn`` as one atomic unit of work, retrying on write conflicts."""
        result: T
        for attempt in Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_random(0, 0.05),
            retry=retry_if_exception_type(TransactionConflict),
            reraise=True,
        ):
            with attempt:
                n = attempt.retry_state.attempt_number
                if n > 1:
                    logger.info("Retrying transaction after conflict (attempt %d/%d)", n, max_attempts)
                tx = Transaction(self)
                result = fn(tx)
                self.commit(tx.writes, expected_versions=tx.reads)
        return result
