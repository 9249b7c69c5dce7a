"""
AI Response API Routes for the Alba conciergerie service.

Generation, history, latest suggestion, feedback and stats.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..middleware.auth import api_key_auth
from ..services import Services, get_services
from llm.orchestrator import record_feedback

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(api_key_auth)])

ERROR_STATUS = {
    "not_found": 404,
    "no_context": 409,
    "generation_failed": 502,
    "parse_failed": 502,
}


# ── Request / Response Models ─────────────────────────────────────

class GenerateRequest(BaseModel):
    conversation_id: str = Field(..., min_length=1)


class FeedbackRequest(BaseModel):
    feedback: Literal["approved", "edited", "rejected"]


class AIResponseOut(BaseModel):
    id: str
    conversation_id: str
    generated_content: str
    confidence_score: float
    action_taken: str
    reasoning: Optional[str] = None
    detected_intent: Optional[str] = None
    model_used: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    response_time_ms: Optional[int] = None
    message_id: Optional[str] = None
    user_feedback: Optional[str] = None
    created_at: str


class AIStats(BaseModel):
    organization_id: str
    start: str
    end: str
    total: int
    auto_sent: int
    suggested: int
    escalated: int
    avg_confidence: float


def _ready_services() -> Services:
    services = get_services()
    if not services.is_ready:
        raise HTTPException(status_code=503, detail="AI generation is not available")
    return services


# ── Endpoints ─────────────────────────────────────────────────────

@router.post("/ai/generate")
async def generate(request: GenerateRequest):
    """
    Generate a reply for a conversation and act on it.

    Returns the pipeline payload; failures keep the same shape with
    success=false and an HTTP status matching the error.
    """
    services = _ready_services()
    result = await services.orchestrator.generate_response(request.conversation_id, trigger="manual")
    if not result["success"]:
        return JSONResponse(status_code=ERROR_STATUS.get(result["error"], 400), content=result)
    return result


@router.get("/ai/responses", response_model=List[AIResponseOut])
async def list_responses(conversation_id: str = Query(..., min_length=1)):
    """AI responses for a conversation, newest first."""
    records = await get_services().store.list_ai_responses(conversation_id)
    return [r.to_dict() for r in records]


@router.get("/ai/responses/latest-suggestion")
async def latest_suggestion(conversation_id: str = Query(..., min_length=1)) -> Dict[str, Any]:
    """Most recent suggested/escalated response still awaiting feedback."""
    record = await get_services().store.get_latest_suggestion(conversation_id)
    return {"suggestion": record.to_dict() if record else None}


@router.post("/ai/responses/{ai_response_id}/feedback", response_model=AIResponseOut)
async def submit_feedback(ai_response_id: str, request: FeedbackRequest):
    """Record a human verdict on an AI response."""
    record = await record_feedback(get_services().store, ai_response_id, request.feedback)
    if record is None:
        raise HTTPException(status_code=404, detail=f"AI response {ai_response_id} not found")
    return record.to_dict()


@router.get("/ai/stats", response_model=AIStats)
async def stats(
    organization_id: str = Query(..., min_length=1),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Per-action counts and average confidence over a date range (default: last 30 days)."""
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=30)
    if start > end:
        raise HTTPException(status_code=422, detail="start must be before end")

    summary = await get_services().store.get_ai_response_stats(organization_id, start, end)
    return AIStats(
        organization_id=organization_id,
        start=start.isoformat(),
        end=end.isoformat(),
        **summary,
    )
