"""
Shared fixtures for ledger tests: in-memory stores with failure injection.
"""

import itertools
from typing import Dict, List, Set

import pytest

from advice_ledger.core.backend import InMemoryStore, KeyValueStore
from advice_ledger.core.codec import SimulatedEnvelopeCodec
from advice_ledger.core.identity import StaticIdentityProvider
from advice_ledger.core.ledger import AdviceLedger
from advice_ledger.core.schema import (
    INDEX_KEY,
    AdviceRecord,
    encode_index,
    encode_record,
    record_key
)

OWNER = "0x1111111111111111111111111111111111111111"


class RecordingStore(InMemoryStore):
    """In-memory store that records writes and can refuse chosen ones."""

    def __init__(self):
        super().__init__()
        self.writes: List[str] = []
        self.fail_keys: Set[str] = set()
        self.fail_prefixes: Set[str] = set()
        self.raise_on_write = False

    def _should_fail(self, key: str) -> bool:
        return key in self.fail_keys or any(key.startswith(p) for p in self.fail_prefixes)

    def set_data(self, key: str, value: bytes) -> bool:
        self.writes.append(key)
        if self._should_fail(key):
            if self.raise_on_write:
                raise ConnectionError(f"write to {key} timed out")
            return False
        return super().set_data(key, value)

    def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        self.writes.append(key)
        if self._should_fail(key):
            if self.raise_on_write:
                raise ConnectionError(f"write to {key} timed out")
            return False
        return super().compare_and_set(key, expected, value)


class PlainStore(KeyValueStore):
    """Store exposing only the three required primitives."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.available = True
        self.writes: List[str] = []
        self.fail_keys: Set[str] = set()

    def get_data(self, key: str) -> bytes:
        return self.data.get(key, b"")

    def set_data(self, key: str, value: bytes) -> bool:
        self.writes.append(key)
        if key in self.fail_keys:
            return False
        self.data[key] = value
        return True

    def is_available(self) -> bool:
        return self.available


def make_record(advice_id: str, timestamp: int, category: str = "Career Change",
                question: str = "FHE-cXVlc3Rpb24=", owner: str = OWNER) -> AdviceRecord:
    return AdviceRecord(
        id=advice_id,
        encoded_question=question,
        encoded_answer="FHE-YW5zd2Vy",
        timestamp=timestamp,
        owner=owner,
        category=category
    )


def seed(store: KeyValueStore, records: List[AdviceRecord], index_ids: List[str] = None):
    """Write records and an index directly, bypassing the writer."""
    for record in records:
        store.set_data(record_key(record.id), encode_record(record))
    ids = index_ids if index_ids is not None else [r.id for r in records]
    store.set_data(INDEX_KEY, encode_index(ids))


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def plain_store():
    return PlainStore()


@pytest.fixture
def codec():
    return SimulatedEnvelopeCodec()


@pytest.fixture
def identity():
    return StaticIdentityProvider(OWNER)


@pytest.fixture
def clock():
    """Deterministic clock advancing one second per call, starting at 1_700_000_000."""
    ticks = itertools.count(1_700_000_000)
    return lambda: float(next(ticks))


@pytest.fixture
def ledger(store, codec, identity, clock):
    return AdviceLedger(store=store, codec=codec, identity=identity, clock=clock, strict_categories=True)
