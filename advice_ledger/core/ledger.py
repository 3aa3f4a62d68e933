"""
Advice ledger facade - wires store, codec, index, reader and writer together.

The caller owns the LedgerView returned by refresh(); nothing is cached at
module level and every refresh is a full fetch-all.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from util.logging import logger

from .backend import KeyValueStore
from .codec import EnvelopeCodec
from .config import get_codec, get_default_owner, get_store
from .errors import IndexAppendFailure
from .identity import IdentityProvider, StaticIdentityProvider
from .index import IndexManager
from .reader import LedgerReader, category_counts, filter_view
from .schema import RECORD_KEY_PREFIX, INDEX_KEY, AdviceRecord
from .writer import LedgerWriter


@dataclass
class LedgerView:
    """Snapshot of the ledger as of one refresh."""
    records: List[AdviceRecord] = field(default_factory=list)
    refreshed_at: Optional[datetime] = None

    def filter(self, term: str) -> List[AdviceRecord]:
        return filter_view(self.records, term)

    def category_counts(self) -> Dict[str, int]:
        return category_counts(self.records)

    def get(self, advice_id: str) -> Optional[AdviceRecord]:
        for record in self.records:
            if record.id == advice_id:
                return record
        return None

    def __len__(self) -> int:
        return len(self.records)


class AdviceLedger:
    """Single entry point for submitting, listing and maintaining the ledger."""

    def __init__(self, store: Optional[KeyValueStore] = None,
                 codec: Optional[EnvelopeCodec] = None,
                 identity: Optional[IdentityProvider] = None,
                 **writer_options):
        self.store = store if store is not None else get_store()
        self.codec = codec if codec is not None else get_codec()
        self.identity = identity if identity is not None else StaticIdentityProvider(get_default_owner())

        self.index = IndexManager(self.store)
        self.reader = LedgerReader(self.store, self.index)
        self.writer = LedgerWriter(self.store, self.index, self.codec, self.identity, **writer_options)

    def submit(self, question: str, category: str, owner: Optional[str] = None) -> AdviceRecord:
        return self.writer.submit(question, category, owner)

    def list_all(self) -> List[AdviceRecord]:
        return self.reader.list_all()

    def refresh(self) -> LedgerView:
        """Re-derive the full view from the index."""
        return LedgerView(records=self.reader.list_all(), refreshed_at=datetime.now())

    def fetch_record(self, advice_id: str) -> Optional[AdviceRecord]:
        return self.reader.fetch_record(advice_id)

    def reveal(self, record: AdviceRecord) -> Tuple[str, str]:
        """Decode a record's question and answer. Raises DecodeError on bad envelopes."""
        return self.codec.decode(record.encoded_question), self.codec.decode(record.encoded_answer)

    def find_orphans(self) -> List[str]:
        """Ids of records stored but missing from the index.

        Needs a store that can enumerate keys; otherwise orphans are
        undetectable and [] is returned.
        """
        if not self.store.supports_enumeration():
            logger.log_operation("ledger.find_orphans", "skipped", {"reason": "store cannot enumerate keys"})
            return []

        indexed = set(self.index.read_index(strict=True))
        orphans = []
        for key in self.store.keys(RECORD_KEY_PREFIX):
            if key == INDEX_KEY:
                continue
            advice_id = key[len(RECORD_KEY_PREFIX):]
            if advice_id not in indexed and self.reader.fetch_record(advice_id) is not None:
                orphans.append(advice_id)
        return orphans

    def repair_index(self) -> List[str]:
        """Append every readable orphan to the index. Returns the ids added.

        On IndexAppendFailure the ids re-indexed before the failure are
        attached to the error as `added`.
        """
        added = []
        for advice_id in self.find_orphans():
            try:
                self.index.append_index(advice_id)
            except IndexAppendFailure as e:
                logger.log_ledger_event(
                    "repair_index", advice_id, {"added": len(added), "ids": added}, status="failed"
                )
                e.added = added
                raise
            added.append(advice_id)

        logger.log_ledger_event("repair_index", details={"added": len(added)})
        return added
