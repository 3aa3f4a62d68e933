"""
HTTP surface for the advice ledger.
"""

from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from util.logging import logger

from .schemas import (
    AdviceSubmitRequest,
    AdviceResponse,
    AdviceListResponse,
    AdviceRevealResponse,
    StatsResponse,
    HealthResponse,
    OrphanListResponse,
    RepairResponse,
    PartialSubmitResponse
)
from ..core.config import VERSION, debug_enabled
from ..core.errors import (
    BackendUnavailable,
    DecodeError,
    IndexAppendFailure,
    RecordWriteFailure,
    ValidationError
)
from ..core.ledger import AdviceLedger

# Initialize the FastAPI application
app = FastAPI(
    title="Advice Ledger API",
    version=VERSION,
    description="Private career questions stored on a key-value ledger",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)

# Add CORS middleware to allow frontend connections
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_ledger() -> AdviceLedger:
    """Ledger built from environment configuration; overridden in tests."""
    return AdviceLedger()


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(ledger: AdviceLedger = Depends(get_ledger)):
    """Check backend availability and index size."""
    available = ledger.store.is_available()
    indexed = len(ledger.index.read_index()) if available else 0

    return HealthResponse(
        status="healthy" if available else "unhealthy",
        version=VERSION,
        backend_available=available,
        indexed_count=indexed
    )


@app.get("/advice", response_model=AdviceListResponse)
def list_advice_endpoint(search: str = "", ledger: AdviceLedger = Depends(get_ledger)):
    """List indexed records newest first, optionally filtered by a search term."""
    view = ledger.refresh()
    items = view.filter(search)
    return AdviceListResponse(
        items=[AdviceResponse.from_record(r) for r in items],
        total=len(items),
        search=search
    )


# Define /advice/stats BEFORE /advice/{advice_id} to avoid path parameter conflict
@app.get("/advice/stats", response_model=StatsResponse)
def advice_stats_endpoint(ledger: AdviceLedger = Depends(get_ledger)):
    """Per-category record counts."""
    view = ledger.refresh()
    return StatsResponse(total=len(view), categories=view.category_counts())


@app.get("/advice/{advice_id}", response_model=AdviceResponse)
def get_advice_endpoint(advice_id: str, ledger: AdviceLedger = Depends(get_ledger)):
    """Fetch one record directly by id."""
    record = ledger.fetch_record(advice_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Advice '{advice_id}' not found")
    return AdviceResponse.from_record(record)


@app.get("/advice/{advice_id}/reveal", response_model=AdviceRevealResponse)
def reveal_advice_endpoint(advice_id: str, ledger: AdviceLedger = Depends(get_ledger)):
    """Decode a record's question and answer."""
    record = ledger.fetch_record(advice_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Advice '{advice_id}' not found")

    try:
        question, answer = ledger.reveal(record)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return AdviceRevealResponse(id=record.id, question=question, answer=answer)


@app.post("/advice", response_model=AdviceResponse, status_code=201)
def submit_advice_endpoint(req: AdviceSubmitRequest, ledger: AdviceLedger = Depends(get_ledger)):
    """Submit a new question."""
    try:
        record = ledger.submit(req.question, req.category, req.owner)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except BackendUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except RecordWriteFailure as e:
        raise HTTPException(status_code=502, detail=f"Submission failed: {e}")
    except IndexAppendFailure as e:
        logger.warning(f"Submission {e.advice_id} stored but not indexed: {e}")
        body = PartialSubmitResponse(
            advice_id=e.advice_id,
            record_key=e.record_key,
            message=f"Question stored but not listed: {e}"
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    return AdviceResponse.from_record(record)


@app.get("/ledger/orphans", response_model=OrphanListResponse)
def list_orphans_endpoint(ledger: AdviceLedger = Depends(get_ledger)):
    """Records stored without an index entry."""
    return OrphanListResponse(
        orphans=ledger.find_orphans(),
        enumerable=ledger.store.supports_enumeration()
    )


@app.post("/ledger/repair", response_model=RepairResponse)
def repair_index_endpoint(ledger: AdviceLedger = Depends(get_ledger)):
    """Re-index orphaned records."""
    try:
        added = ledger.repair_index()
    except IndexAppendFailure as e:
        raise HTTPException(status_code=500, detail={
            "message": f"Repair stopped at {e.advice_id}: {e}",
            "added": e.added,
        })
    return RepairResponse(added=added)
