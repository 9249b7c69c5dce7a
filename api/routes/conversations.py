"""
Conversation maintenance routes.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..middleware.auth import api_key_auth
from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(api_key_auth)])


class StatusUpdate(BaseModel):
    status: Literal["active", "archived", "resolved"]


class AIToggle(BaseModel):
    ai_disabled: bool


async def _update(conversation_id: str, **fields) -> dict:
    store = get_services().store
    if not await store.update_conversation(conversation_id, **fields):
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    logger.info(f"Conversation {conversation_id} updated: {fields}")
    return {"conversation_id": conversation_id, **fields}


@router.post("/conversations/{conversation_id}/read")
async def mark_read(conversation_id: str):
    """Reset the unread counter."""
    return await _update(conversation_id, unread_count=0)


@router.patch("/conversations/{conversation_id}/status")
async def update_status(conversation_id: str, request: StatusUpdate):
    return await _update(conversation_id, status=request.status)


@router.patch("/conversations/{conversation_id}/ai")
async def toggle_ai(conversation_id: str, request: AIToggle):
    """Enable or disable automatic AI replies for a conversation."""
    return await _update(conversation_id, ai_disabled=request.ai_disabled)
