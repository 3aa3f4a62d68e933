"""
Ledger reader - rebuilds the newest-first view from the index.

Listing degrades instead of failing: an unavailable store yields an empty
view, and a missing or undecodable record is logged and left out.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from util.logging import logger

from .backend import KeyValueStore
from .config import get_fetch_workers
from .errors import RecordDecodeError
from .index import IndexManager
from .schema import CATEGORIES, AdviceRecord, decode_record, record_key


class LedgerReader:
    """Fetch-all reader over the index and the per-record keys."""

    def __init__(self, store: KeyValueStore, index: IndexManager, fetch_workers: Optional[int] = None):
        self.store = store
        self.index = index
        self.fetch_workers = fetch_workers if fetch_workers is not None else get_fetch_workers()

    def list_all(self) -> List[AdviceRecord]:
        """Return every readable indexed record, newest first."""
        if not self.store.is_available():
            logger.log_operation("ledger.list_all", "skipped", {"reason": "backend unavailable"})
            return []

        ids = self.index.read_index()
        if not ids:
            return []

        if self.fetch_workers > 1 and len(ids) > 1:
            with ThreadPoolExecutor(max_workers=min(self.fetch_workers, len(ids))) as pool:
                fetched = list(pool.map(self.fetch_record, ids))
        else:
            fetched = [self.fetch_record(advice_id) for advice_id in ids]

        records = [r for r in fetched if r is not None]
        # Stable sort: equal timestamps keep index order
        records.sort(key=lambda r: r.timestamp, reverse=True)

        logger.log_ledger_event("list_all", details={
            "indexed": len(ids),
            "returned": len(records),
            "skipped": len(ids) - len(records)
        })
        return records

    def fetch_record(self, advice_id: str) -> Optional[AdviceRecord]:
        """Fetch and decode one record by id; None when absent or unreadable."""
        key = record_key(advice_id)
        try:
            data = self.store.get_data(key)
        except Exception as e:
            logger.log_operation("KV.get", "failed", {"key": key, "error": str(e)[:100]})
            return None

        if not data:
            logger.log_operation("KV.get", "missing", {"key": key})
            return None

        try:
            return decode_record(advice_id, data)
        except RecordDecodeError as e:
            logger.log_decode_failure("record", key, e)
            return None


def filter_view(view: List[AdviceRecord], term: str) -> List[AdviceRecord]:
    """Records whose category or encoded question contains term, ignoring case."""
    needle = (term or "").lower()
    if not needle:
        return list(view)
    return [
        r for r in view
        if needle in r.category.lower() or needle in r.encoded_question.lower()
    ]


def category_counts(view: List[AdviceRecord]) -> Dict[str, int]:
    """Number of records per known category, in display order."""
    counts = {category: 0 for category in CATEGORIES}
    for record in view:
        if record.category in counts:
            counts[record.category] += 1
    return counts
