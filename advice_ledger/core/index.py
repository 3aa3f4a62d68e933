"""
Ledger index manager - owns the "advice_keys" list of record ids.

Known concurrency limitation: on stores without compare_and_set() the append
is a plain read-modify-write. Two writers interleaving (read A, read B,
write A, write B) lose A's id from the index; A's record stays in the store
as an orphan. Stores with compare_and_set() get an optimistic retry loop
instead, bounded by LEDGER_INDEX_MAX_RETRIES.
"""

from typing import List, Optional, Tuple

from util.logging import logger

from .backend import KeyValueStore
from .config import get_index_max_retries
from .errors import IndexAppendFailure, IndexDecodeError
from .schema import INDEX_KEY, decode_index, encode_index, record_key


class IndexManager:
    """Read and append operations on the ledger index."""

    def __init__(self, store: KeyValueStore, max_retries: Optional[int] = None):
        self.store = store
        self.max_retries = max_retries if max_retries is not None else get_index_max_retries()

    def _read_raw(self) -> Tuple[bytes, List[str]]:
        """Fetch the index bytes and their lenient decoding.

        Store errors propagate; callers decide whether they are fatal.
        """
        raw = self.store.get_data(INDEX_KEY)
        try:
            ids = decode_index(raw)
        except IndexDecodeError as e:
            # A corrupt index must not block reads; treat it as empty
            logger.log_decode_failure("index", INDEX_KEY, e)
            ids = []
        return raw, ids

    def read_index(self, strict: bool = False) -> List[str]:
        """Return the record ids currently in the index; [] when absent or corrupt.

        A store error while fetching also yields [] unless strict is set.
        """
        if strict:
            _, ids = self._read_raw()
            return ids
        try:
            _, ids = self._read_raw()
        except Exception as e:
            logger.log_operation("KV.get", "failed", {"key": INDEX_KEY, "error": str(e)[:100]})
            return []
        return ids

    def append_index(self, advice_id: str) -> List[str]:
        """Append advice_id to the index and return the written id list.

        Raises IndexAppendFailure when the index write does not succeed.
        """
        if self.store.supports_compare_and_set():
            return self._append_optimistic(advice_id)
        return self._append_unguarded(advice_id)

    def _guarded_read(self, advice_id: str) -> Tuple[bytes, List[str]]:
        try:
            return self._read_raw()
        except Exception as e:
            self._fail(advice_id, f"index read raised: {e}", e)

    def _append_unguarded(self, advice_id: str) -> List[str]:
        _, ids = self._guarded_read(advice_id)
        if advice_id in ids:
            return ids
        ids.append(advice_id)

        payload = encode_index(ids)
        try:
            ok = self.store.set_data(INDEX_KEY, payload)
        except Exception as e:
            self._fail(advice_id, f"index write raised: {e}", e)
        if not ok:
            self._fail(advice_id, "index write rejected by store")

        logger.log_kv_operation("set", INDEX_KEY, size=len(payload))
        return ids

    def _append_optimistic(self, advice_id: str) -> List[str]:
        for attempt in range(1, self.max_retries + 1):
            raw, ids = self._guarded_read(advice_id)
            if advice_id in ids:
                return ids
            ids.append(advice_id)

            payload = encode_index(ids)
            try:
                swapped = self.store.compare_and_set(INDEX_KEY, raw, payload)
            except Exception as e:
                self._fail(advice_id, f"index write raised: {e}", e)

            if swapped:
                logger.log_kv_operation("compare_and_set", INDEX_KEY, size=len(payload))
                return ids

            logger.log_ledger_event("index_conflict", advice_id, {"attempt": attempt}, status="retry")

        self._fail(advice_id, f"index not updated after {self.max_retries} attempts (concurrent change or rejected write)")

    def _fail(self, advice_id: str, message: str, cause: Exception = None):
        key = record_key(advice_id)
        logger.log_write_failure("index", INDEX_KEY, cause or message, partial=True)
        raise IndexAppendFailure(advice_id, key, INDEX_KEY, message, cause)
