"""Tests for the in-memory document store and optimistic transactions."""

import pytest

from squadpool.errors import TransactionConflict
from squadpool.store.base import Write, deep_merge


class TestMemoryStore:

    def test_set_merge_delete_bump_versions(self, store):
        store.commit([Write.set("c", "d", {"a": 1, "nested": {"x": 1}})])
        assert store.read_versioned("c", "d") == (1, {"a": 1, "nested": {"x": 1}})

        store.commit([Write.merge_into("c", "d", {"nested": {"y": 2}})])
        assert store.read_versioned("c", "d") == (2, {"a": 1, "nested": {"x": 1, "y": 2}})

        store.commit([Write.delete("c", "d")])
        assert store.read_versioned("c", "d") == (3, None)

    def test_merge_into_missing_creates(self, store):
        store.commit([Write.merge_into("c", "new", {"a": 1})])
        assert store.get("c", "new") == {"a": 1}

    def test_returned_data_is_a_copy(self, store):
        store.commit([Write.set("c", "d", {"items": [1]})])
        store.get("c", "d")["items"].append(2)
        assert store.get("c", "d") == {"items": [1]}

    def test_list_filters_and_limits(self, store):
        store.commit([
            Write.set("m", "1", {"source": "fixture"}),
            Write.set("m", "2", {"source": "manual"}),
            Write.set("m", "3", {"source": "fixture"}),
            Write.set("other", "4", {"source": "fixture"}),
        ])
        assert [s.id for s in store.list("m", where={"source": "fixture"})] == ["1", "3"]
        assert len(store.list("m", limit=2)) == 2

    def test_commit_is_all_or_nothing_on_conflict(self, store):
        store.commit([Write.set("c", "d", {"a": 1})])
        with pytest.raises(TransactionConflict):
            store.commit(
                [Write.set("c", "d", {"a": 2}), Write.set("c", "e", {"b": 1})],
                expected_versions={("c", "d"): 0},
            )
        assert store.get("c", "d") == {"a": 1}
        assert store.get("c", "e") is None

    def test_commit_batched(self, store):
        writes = [Write.set("c", str(i), {"i": i}) for i in range(5)]
        assert store.commit_batched(writes, 2) == 3
        assert store.count("c") == 5
        assert store.commit_batched([], 2) == 0


class TestRunTransaction:

    def test_read_modify_write(self, store):
        store.commit([Write.set("c", "counter", {"n": 1})])

        def bump(tx):
            n = tx.get("c", "counter")["n"]
            tx.set("c", "counter", {"n": n + 1})
            return n + 1

        assert store.run_transaction(bump) == 2
        assert store.get("c", "counter") == {"n": 2}

    def test_retries_after_concurrent_write(self, store):
        store.commit([Write.set("c", "counter", {"n": 1})])
        attempts = []

        def bump(tx):
            n = tx.get("c", "counter")["n"]
            attempts.append(n)
            if len(attempts) == 1:
                store.commit([Write.set("c", "counter", {"n": 10})])
            tx.set("c", "counter", {"n": n + 1})

        store.run_transaction(bump)
        assert attempts == [1, 10]
        assert store.get("c", "counter") == {"n": 11}

    def test_gives_up_after_max_attempts(self, store):
        store.commit([Write.set("c", "counter", {"n": 0})])
        calls = []

        def always_raced(tx):
            n = tx.get("c", "counter")["n"]
            calls.append(n)
            store.commit([Write.set("c", "counter", {"n": n + 100})])
            tx.set("c", "counter", {"n": n + 1})

        with pytest.raises(TransactionConflict):
            store.run_transaction(always_raced, max_attempts=3)
        assert len(calls) == 3

    def test_reads_after_writes_rejected(self, store):
        def bad(tx):
            tx.set("c", "a", {})
            tx.get("c", "b")

        with pytest.raises(RuntimeError):
            store.run_transaction(bad)
        assert store.get("c", "a") is None

    def test_missing_document_conflicts_when_created(self, store):
        def create(tx):
            assert tx.get("c", "new") is None
            if store.get("c", "new") is None:
                store.commit([Write.set("c", "new", {"by": "other"})])
            tx.set("c", "new", {"by": "tx"})

        with pytest.raises(TransactionConflict):
            store.run_transaction(create, max_attempts=1)
        assert store.get("c", "new") == {"by": "other"}


def test_deep_merge_replaces_lists():
    merged = deep_merge({"a": {"x": 1}, "l": [1, 2]}, {"a": {"y": 2}, "l": [3]})
    assert merged == {"a": {"x": 1, "y": 2}, "l": [3]}
