"""
HTTP request/response models for the advice ledger API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict

from ..core.schema import AdviceRecord


class AdviceSubmitRequest(BaseModel):
    question: str
    category: str
    owner: Optional[str] = None

    @field_validator('question')
    @classmethod
    def question_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('question cannot be empty')
        return v

    @field_validator('category')
    @classmethod
    def category_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('category cannot be empty')
        return v


class AdviceResponse(BaseModel):
    id: str
    encoded_question: str
    encoded_answer: str
    timestamp: int
    owner: str
    category: str

    @classmethod
    def from_record(cls, record: AdviceRecord) -> "AdviceResponse":
        return cls(**record.to_dict())


class AdviceListResponse(BaseModel):
    items: List[AdviceResponse]
    total: int
    search: str = ""


class AdviceRevealResponse(BaseModel):
    id: str
    question: str
    answer: str


class StatsResponse(BaseModel):
    total: int
    categories: Dict[str, int]


class HealthResponse(BaseModel):
    status: str
    version: str
    backend_available: bool
    indexed_count: int


class OrphanListResponse(BaseModel):
    orphans: List[str]
    enumerable: bool


class RepairResponse(BaseModel):
    added: List[str]


class PartialSubmitResponse(BaseModel):
    status: str = "partial"
    advice_id: str
    record_key: str
    message: str
