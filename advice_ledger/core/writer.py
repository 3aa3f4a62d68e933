"""
Ledger writer - persists a new question record, then indexes it.

Order matters: the record is written first and the index only afterwards, so
the index never names a record that was not durably stored. A failed append
leaves an orphan record and is reported as IndexAppendFailure.
"""

import secrets
import string
import time
from typing import Callable, Optional

from util.logging import logger

from .backend import KeyValueStore
from .codec import PLACEHOLDER_ANSWER, EnvelopeCodec
from .config import is_category_validation_strict
from .errors import BackendUnavailable, RecordWriteFailure, ValidationError
from .identity import IdentityProvider
from .index import IndexManager
from .schema import CATEGORIES, AdviceRecord, encode_record, record_key

ID_TOKEN_ALPHABET = string.digits + string.ascii_lowercase
ID_TOKEN_LENGTH = 7


def generate_advice_id(now: float) -> str:
    """Millisecond timestamp plus a short base36 token. Uniqueness is not checked."""
    token = "".join(secrets.choice(ID_TOKEN_ALPHABET) for _ in range(ID_TOKEN_LENGTH))
    return f"{int(now * 1000)}-{token}"


class LedgerWriter:
    """Creates records and appends them to the index."""

    def __init__(self, store: KeyValueStore, index: IndexManager, codec: EnvelopeCodec,
                 identity: Optional[IdentityProvider] = None,
                 clock: Callable[[], float] = time.time,
                 strict_categories: Optional[bool] = None):
        self.store = store
        self.index = index
        self.codec = codec
        self.identity = identity
        self.clock = clock
        self.strict_categories = (
            strict_categories if strict_categories is not None else is_category_validation_strict()
        )

    def validate(self, question: str, category: str, owner: Optional[str]) -> str:
        """Check submit input without touching the store; returns the resolved owner."""
        if not question or not question.strip():
            raise ValidationError("question", "question cannot be empty")
        if not category or not category.strip():
            raise ValidationError("category", "category cannot be empty")
        if self.strict_categories and category not in CATEGORIES:
            raise ValidationError("category", f"category must be one of: {CATEGORIES}")

        if not owner and self.identity is not None:
            owner = self.identity.current_address()
        if not owner or not owner.strip():
            raise ValidationError("owner", "no connected identity to own the record")
        return owner

    def submit(self, question: str, category: str, owner: Optional[str] = None) -> AdviceRecord:
        """Store a new question and index it.

        Exactly two writes on success (record, then index). Not retried here:
        callers retry the whole submit, which produces a fresh id.

        Raises:
            ValidationError: bad input, before any I/O
            BackendUnavailable: store liveness probe failed, before any write
            RecordWriteFailure: record not stored, index untouched
            IndexAppendFailure: record stored but not indexed (orphan)
        """
        owner = self.validate(question, category, owner)

        if not self.store.is_available():
            logger.log_operation("ledger.submit", "rejected", {"reason": "backend unavailable"})
            raise BackendUnavailable("store is not available for writes")

        encoded_question = self.codec.encode(question)
        encoded_answer = self.codec.encode(PLACEHOLDER_ANSWER)

        now = self.clock()
        record = AdviceRecord(
            id=generate_advice_id(now),
            encoded_question=encoded_question,
            encoded_answer=encoded_answer,
            timestamp=int(now),
            owner=owner,
            category=category,
        )

        key = record_key(record.id)
        payload = encode_record(record)
        try:
            ok = self.store.set_data(key, payload)
        except Exception as e:
            logger.log_write_failure("record", key, e)
            raise RecordWriteFailure(key, f"record write raised: {e}", e) from e
        if not ok:
            logger.log_write_failure("record", key, "rejected by store")
            raise RecordWriteFailure(key, "record write rejected by store")
        logger.log_kv_operation("set", key, size=len(payload))

        # Raises IndexAppendFailure; the record above stays as an orphan
        self.index.append_index(record.id)

        logger.log_ledger_event("submit", record.id, {"category": category, "owner": owner})
        return record
