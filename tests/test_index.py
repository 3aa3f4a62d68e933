"""
Index manager tests: lenient reads, appends, optimistic concurrency.
"""

import sqlite3
from unittest.mock import patch

import pytest

from advice_ledger.core.backend import InMemoryStore
from advice_ledger.core.errors import IndexAppendFailure
from advice_ledger.core.index import IndexManager
from advice_ledger.core.schema import INDEX_KEY, decode_index, encode_index


class InterleavingStore(InMemoryStore):
    """Simulates another writer appending between our read and our swap."""

    def __init__(self, conflicts: int):
        super().__init__()
        self.conflicts = conflicts
        self.swaps = 0

    def compare_and_set(self, key, expected, value):
        self.swaps += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            current = self.get_data(key)
            ids = decode_index(current) + [f"other-{self.swaps}"]
            super().set_data(key, encode_index(ids))
        return super().compare_and_set(key, expected, value)


class TestReadIndex:

    def test_absent_index_is_empty(self, store):
        assert IndexManager(store).read_index() == []

    def test_reads_ids(self, store):
        store.set_data(INDEX_KEY, b'["a", "b"]')
        assert IndexManager(store).read_index() == ["a", "b"]

    @pytest.mark.parametrize("raw", [b"{corrupt", b'{"a": 1}', b"\xff"])
    def test_corrupt_index_reads_as_empty(self, store, raw, caplog):
        store.set_data(INDEX_KEY, raw)
        assert IndexManager(store).read_index() == []
        assert "decode.index" in caplog.text

    def test_raising_read_is_empty(self, store, caplog):
        store.set_data(INDEX_KEY, b'["a"]')
        with patch.object(store, "get_data", side_effect=sqlite3.OperationalError("database is locked")):
            assert IndexManager(store).read_index() == []
        assert "KV.get" in caplog.text
        assert "database is locked" in caplog.text

    def test_strict_read_propagates(self, store):
        with patch.object(store, "get_data", side_effect=ConnectionError("read timed out")):
            with pytest.raises(ConnectionError):
                IndexManager(store).read_index(strict=True)


class TestAppendIndex:

    def test_append_to_empty(self, store):
        index = IndexManager(store)
        assert index.append_index("a") == ["a"]
        assert index.read_index() == ["a"]

    def test_append_keeps_existing(self, store):
        store.set_data(INDEX_KEY, b'["a"]')
        index = IndexManager(store)
        index.append_index("b")
        assert index.read_index() == ["a", "b"]

    def test_append_is_idempotent_per_id(self, store):
        index = IndexManager(store)
        index.append_index("a")
        index.append_index("a")
        assert index.read_index() == ["a"]

    def test_append_over_corrupt_index_starts_fresh(self, store):
        store.set_data(INDEX_KEY, b"{corrupt")
        index = IndexManager(store)
        index.append_index("a")
        assert index.read_index() == ["a"]

    def test_plain_store_append(self, plain_store):
        index = IndexManager(plain_store)
        index.append_index("a")
        index.append_index("b")
        assert index.read_index() == ["a", "b"]
        assert plain_store.writes == [INDEX_KEY, INDEX_KEY]

    def test_rejected_write_raises(self, plain_store):
        plain_store.fail_keys.add(INDEX_KEY)
        with pytest.raises(IndexAppendFailure) as exc_info:
            IndexManager(plain_store).append_index("a")
        assert exc_info.value.advice_id == "a"
        assert exc_info.value.record_key == "advice_a"
        assert exc_info.value.partial is True

    def test_raising_write_raises(self, store):
        store.fail_keys.add(INDEX_KEY)
        store.raise_on_write = True
        with pytest.raises(IndexAppendFailure) as exc_info:
            IndexManager(store).append_index("a")
        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_raising_read_fails_optimistic_append(self, store):
        store.set_data(INDEX_KEY, b'["a"]')
        store.writes.clear()
        with patch.object(store, "get_data", side_effect=ConnectionError("read timed out")):
            with pytest.raises(IndexAppendFailure) as exc_info:
                IndexManager(store).append_index("b")

        assert isinstance(exc_info.value.cause, ConnectionError)
        assert store.writes == []
        assert decode_index(store.get_data(INDEX_KEY)) == ["a"]

    def test_raising_read_fails_plain_append(self, plain_store):
        plain_store.data[INDEX_KEY] = encode_index(["a"])
        with patch.object(plain_store, "get_data", side_effect=sqlite3.OperationalError("database is locked")):
            with pytest.raises(IndexAppendFailure) as exc_info:
                IndexManager(plain_store).append_index("b")

        assert isinstance(exc_info.value.cause, sqlite3.OperationalError)
        assert plain_store.writes == []
        assert decode_index(plain_store.data[INDEX_KEY]) == ["a"]


class TestOptimisticAppend:

    def test_retry_keeps_concurrent_append(self):
        """A concurrent append between read and swap is not lost."""
        store = InterleavingStore(conflicts=2)
        ids = IndexManager(store, max_retries=5).append_index("mine")

        assert store.swaps == 3
        assert "mine" in ids
        assert IndexManager(store).read_index() == ["other-1", "other-2", "mine"]

    def test_retries_exhausted(self):
        store = InterleavingStore(conflicts=10)
        with pytest.raises(IndexAppendFailure):
            IndexManager(store, max_retries=3).append_index("mine")
        assert store.swaps == 3
        assert "mine" not in IndexManager(store).read_index()

    def test_unguarded_race_loses_append(self, plain_store):
        """Documented limitation: interleaved read-modify-write drops an id."""
        first = IndexManager(plain_store)
        second = IndexManager(plain_store)

        ids_a = first.read_index() + ["a"]
        ids_b = second.read_index() + ["b"]
        plain_store.set_data(INDEX_KEY, encode_index(ids_a))
        plain_store.set_data(INDEX_KEY, encode_index(ids_b))

        assert IndexManager(plain_store).read_index() == ["b"]
