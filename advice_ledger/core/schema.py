"""
Ledger data model and wire format.

Index key:  "advice_keys"         -> UTF-8 JSON array of record ids
Record key: "advice_" + record id -> UTF-8 JSON object
            {question, answer, timestamp, owner, category}
"""

import json
from dataclasses import dataclass
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from .errors import IndexDecodeError, RecordDecodeError

INDEX_KEY = "advice_keys"
RECORD_KEY_PREFIX = "advice_"

CATEGORIES = [
    "Career Change",
    "Salary Negotiation",
    "Skills Development",
    "Work-Life Balance",
    "Promotion",
]


def record_key(advice_id: str) -> str:
    """Derive the store key of a record from its id."""
    return f"{RECORD_KEY_PREFIX}{advice_id}"


@dataclass(frozen=True)
class AdviceRecord:
    id: str
    encoded_question: str
    encoded_answer: str
    timestamp: int
    owner: str
    category: str

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "encoded_question": self.encoded_question,
            "encoded_answer": self.encoded_answer,
            "timestamp": self.timestamp,
            "owner": self.owner,
            "category": self.category,
        }


class StoredAdvice(BaseModel):
    """Stored record payload. Field names are fixed by existing ledger data."""
    model_config = ConfigDict(extra="ignore")

    question: StrictStr
    answer: StrictStr
    timestamp: StrictInt
    owner: StrictStr
    category: StrictStr


def encode_record(record: AdviceRecord) -> bytes:
    """Serialize a record to the bytes stored under its record key."""
    payload = StoredAdvice(
        question=record.encoded_question,
        answer=record.encoded_answer,
        timestamp=record.timestamp,
        owner=record.owner,
        category=record.category,
    )
    return payload.model_dump_json().encode("utf-8")


def decode_record(advice_id: str, data: bytes) -> AdviceRecord:
    """Parse stored record bytes. Raises RecordDecodeError on any malformed input."""
    key = record_key(advice_id)
    if not data:
        raise RecordDecodeError(key, "empty value")

    try:
        payload = StoredAdvice.model_validate_json(data.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise RecordDecodeError(key, f"invalid UTF-8: {e}") from e
    except ValidationError as e:
        raise RecordDecodeError(key, f"invalid record payload: {e.error_count()} error(s)") from e

    return AdviceRecord(
        id=advice_id,
        encoded_question=payload.question,
        encoded_answer=payload.answer,
        timestamp=payload.timestamp,
        owner=payload.owner,
        category=payload.category,
    )


def encode_index(ids: List[str]) -> bytes:
    """Serialize the list of record ids stored under the index key."""
    return json.dumps(list(ids)).encode("utf-8")


def decode_index(data: bytes) -> List[str]:
    """Parse index bytes. Empty bytes are an empty index, not an error."""
    if not data:
        return []

    try:
        ids = json.loads(data.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise IndexDecodeError(INDEX_KEY, f"invalid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise IndexDecodeError(INDEX_KEY, f"invalid JSON: {e.msg}") from e

    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise IndexDecodeError(INDEX_KEY, "expected a JSON array of strings")

    return ids
