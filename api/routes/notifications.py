"""
Notification routes.

Lists escalation alerts created by the AI pipeline and marks them read.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..middleware.auth import api_key_auth
from ..services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(api_key_auth)])


class NotificationOut(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    organization_id: Optional[str] = None
    ai_response_id: Optional[str] = None
    content: Optional[str] = None
    link: Optional[str] = None
    channel: str
    is_read: bool
    created_at: str


@router.get("/notifications", response_model=List[NotificationOut])
async def list_notifications(
    user_id: str = Query(..., min_length=1),
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
):
    """A user's notifications, newest first."""
    records = await get_services().store.list_notifications(user_id, unread_only, limit)
    return [n.to_dict() for n in records]


@router.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: str):
    if not await get_services().store.mark_notification_read(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")
    return {"notification_id": notification_id, "is_read": True}
