"""
Webhook Routes for the Alba conciergerie service.

Receives normalized guest emails from the mail-relay connector and
schedules automatic replies.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from ..channels.inbound import InboundEmail
from ..middleware.auth import api_key_auth
from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(api_key_auth)])


# ── Webhook Request Models ────────────────────────────────────────

class InboundEmailWebhook(BaseModel):
    organization_id: str = Field(..., min_length=1)
    thread_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1, description="External mail message id")
    body: str = Field(..., min_length=1)
    from_address: Optional[str] = None
    subject: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    property_id: Optional[str] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    received_at: Optional[datetime] = None


async def _run_automatic_reply(conversation_id: str):
    services = get_services()
    if not services.is_ready:
        logger.warning(f"Automatic reply for {conversation_id} skipped: AI generation unavailable")
        return
    result = await services.orchestrator.generate_response(conversation_id, trigger="automatic")
    if not result["success"]:
        logger.warning(f"Automatic reply for {conversation_id} ended with {result['error']}")


# ── Endpoints ─────────────────────────────────────────────────────

@router.post("/webhooks/inbound-email")
async def inbound_email(payload: InboundEmailWebhook, background_tasks: BackgroundTasks):
    """
    Receive a guest email.

    Stores the message (deduplicated by external id) and schedules an
    automatic reply unless AI is disabled for the conversation.
    """
    services = get_services()
    if services.ingestor is None:
        raise HTTPException(status_code=503, detail="Ingestion is not available")

    result = await services.ingestor.ingest(InboundEmail(
        organization_id=payload.organization_id,
        thread_id=payload.thread_id,
        external_message_id=payload.message_id,
        body=payload.body,
        from_address=payload.from_address,
        subject=payload.subject,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
        property_id=payload.property_id,
        check_in_date=payload.check_in_date,
        check_out_date=payload.check_out_date,
        received_at=payload.received_at,
    ))

    if result.generate:
        background_tasks.add_task(_run_automatic_reply, result.conversation_id)

    return {"status": "duplicate" if result.duplicate else "accepted", **result.to_dict()}
