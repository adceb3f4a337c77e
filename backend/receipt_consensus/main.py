"""
FastAPI application for multi-frame receipt consolidation.

Run server:
   uvicorn receipt_consensus.main:app --reload --port 8000

Example curl request:
curl -X POST "http://127.0.0.1:8000/api/scan/sessions" -H "Content-Type: application/json" -d '{}'
curl -X POST "http://127.0.0.1:8000/api/scan/sessions/<id>/frames" \
  -H "Content-Type: application/json" \
  -d '{"positions": [{"product": "ARLA MILCH 3,8%", "price": "1.99"}], "total": "1.99"}'
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from .config import ConsolidationSettings
from .models import (
    FrameRequest,
    ReceiptResponse,
    ScanResultResponse,
    SessionCreateRequest,
    SessionResponse,
    SettingsRequest,
)
from .services.scan.registry import SessionRegistry
from .services.scan.session import ScanSession

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

registry = SessionRegistry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Close sessions still open at shutdown
    registry.close_all()


app = FastAPI(
    title="Receipt Consensus",
    description="Consolidates per-frame receipt extractions into one confirmed receipt",
    version="1.0.0",
    lifespan=lifespan
)


def _get_session(session_id: str) -> ScanSession:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Scan session not found: {session_id}")


def _build_settings(
    update: Optional[SettingsRequest], base: Optional[ConsolidationSettings] = None
) -> ConsolidationSettings:
    """Merge a partial update into base settings, 422 on invalid values."""
    updates = update.model_dump(exclude_none=True) if update is not None else {}
    try:
        return (base or ConsolidationSettings()).with_updates(**updates)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False)
        )


@app.get("/health", tags=["System"])
async def health():
    """Health check endpoint."""
    return {"status": "ok", "sessions": len(registry)}


@app.post("/api/scan/sessions", response_model=SessionResponse, tags=["Scan Sessions"])
def create_session(request: Optional[SessionCreateRequest] = None):
    """Start a new scan session, optionally with custom settings."""
    settings = _build_settings(request.settings if request else None)
    registry.sweep_idle()
    session_id, session = registry.create(settings)
    return SessionResponse(session_id=session_id, settings=session.settings.model_dump())


@app.post(
    "/api/scan/sessions/{session_id}/frames",
    response_model=ScanResultResponse,
    tags=["Scan Sessions"]
)
def submit_frame(session_id: str, request: FrameRequest):
    """
    Apply one parsed frame to a session.

    Returns the event (progress, complete, timeout or throttled) together with
    the receipt it refers to.
    """
    session = _get_session(session_id)
    try:
        result = session.process_frame(request.to_frame(), now=request.received_at)
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ScanResultResponse(**result.to_dict())


@app.post(
    "/api/scan/sessions/{session_id}/accept",
    response_model=ReceiptResponse,
    tags=["Scan Sessions"]
)
def accept_receipt(session_id: str):
    """Accept the current consolidated receipt and restart the session."""
    session = _get_session(session_id)
    receipt = session.accept()
    return ReceiptResponse(session_id=session_id, receipt=receipt.to_dict())


@app.post("/api/scan/sessions/{session_id}/reset", tags=["Scan Sessions"])
def reset_session(session_id: str):
    """Discard everything collected so far."""
    _get_session(session_id).reset()
    return {"session_id": session_id, "status": "reset"}


@app.put(
    "/api/scan/sessions/{session_id}/settings",
    response_model=SessionResponse,
    tags=["Scan Sessions"]
)
def update_settings(session_id: str, request: SettingsRequest):
    """Change tuning knobs of a running session."""
    session = _get_session(session_id)
    settings = _build_settings(request, session.settings)
    session.update_settings(settings)
    return SessionResponse(session_id=session_id, settings=settings.model_dump())


@app.delete("/api/scan/sessions/{session_id}", tags=["Scan Sessions"])
def delete_session(session_id: str):
    """Close and remove a session."""
    if not registry.remove(session_id):
        raise HTTPException(status_code=404, detail=f"Scan session not found: {session_id}")
    return {"session_id": session_id, "status": "closed"}
