"""
Ledger error taxonomy.

Read paths recover from DecodeError and BackendUnavailable locally and return
a degraded view. Write paths raise WriteFailure subclasses to the caller so a
lost submission is never silent.
"""

from typing import List, Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """Missing or invalid input, rejected before any backend I/O."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class BackendUnavailable(LedgerError):
    """The store's liveness probe reported it unusable."""
    pass


class DecodeError(LedgerError):
    """Stored bytes could not be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot decode '{key}': {reason}")


class IndexDecodeError(DecodeError):
    pass


class RecordDecodeError(DecodeError):
    pass


class WriteFailure(LedgerError):
    """A backend write did not succeed."""

    partial = False

    def __init__(self, key: str, message: str, cause: Optional[BaseException] = None):
        self.key = key
        self.cause = cause
        super().__init__(message)


class RecordWriteFailure(WriteFailure):
    """The record write failed; nothing durable happened."""
    pass


class IndexAppendFailure(WriteFailure):
    """The record is durable but its id never reached the index (orphan)."""

    partial = True

    def __init__(self, advice_id: str, record_key: str, index_key: str, message: str,
                 cause: Optional[BaseException] = None):
        self.advice_id = advice_id
        self.record_key = record_key
        # ids re-indexed by repair before this failure
        self.added: List[str] = []
        super().__init__(index_key, message, cause)
