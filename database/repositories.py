"""
Repository classes for the Alba data access layer.

Each repository encapsulates CRUD operations for a specific model.
Updates are single-row and narrow.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, func, update, or_, case
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    Conversation, Message, AIResponse, AIKnowledgeBase,
    Notification, Organization, Membership, Property,
)

logger = logging.getLogger(__name__)


class ConversationRepository:
    """Data access for conversations and messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Conversation:
        conv = Conversation(**kwargs)
        self.session.add(conv)
        await self.session.flush()
        return conv

    async def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        result = await self.session.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_by_thread(self, organization_id: str, thread_id: str) -> Optional[Conversation]:
        result = await self.session.execute(
            select(Conversation)
            .where(Conversation.organization_id == organization_id, Conversation.thread_id == thread_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update(self, conversation_id: str, **values) -> bool:
        result = await self.session.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(**values)
        )
        return result.rowcount > 0

    async def increment_unread(self, conversation_id: str, last_message_at: datetime) -> None:
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(unread_count=Conversation.unread_count + 1, last_message_at=last_message_at)
        )

    async def add_message(
        self,
        conversation_id: str,
        source: str,
        content: str,
        status: str,
        external_message_id: Optional[str] = None,
        sent_by_user_id: Optional[str] = None,
        metadata_json: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Message:
        msg = Message(
            conversation_id=conversation_id,
            source=source,
            content=content,
            status=status,
            external_message_id=external_message_id,
            sent_by_user_id=sent_by_user_id,
            metadata_json=metadata_json or {},
            created_at=created_at or datetime.utcnow(),
        )
        self.session.add(msg)
        await self.session.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_at=msg.created_at)
        )
        await self.session.flush()
        return msg

    async def get_messages(self, conversation_id: str) -> List[Message]:
        result = await self.session.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_message(self, message_id: str) -> Optional[Message]:
        result = await self.session.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def get_message_by_external_id(self, external_message_id: str) -> Optional[Message]:
        result = await self.session.execute(
            select(Message).where(Message.external_message_id == external_message_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_ai_message(self, conversation_id: str, ai_response_id: str) -> Optional[Message]:
        # metadata_json is not indexable portably; scan the conversation's AI messages
        result = await self.session.execute(
            select(Message).where(Message.conversation_id == conversation_id, Message.source == "ai")
        )
        for msg in result.scalars().all():
            if (msg.metadata_json or {}).get("ai_response_id") == ai_response_id:
                return msg
        return None

    async def update_message_status(
        self, message_id: str, status: str, external_message_id: Optional[str] = None
    ) -> None:
        values: Dict[str, Any] = {"status": status}
        if external_message_id:
            values["external_message_id"] = external_message_id
        await self.session.execute(update(Message).where(Message.id == message_id).values(**values))


class OrganizationRepository:
    """Data access for organizations, memberships and properties."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_ai_settings(self, organization_id: str) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(
            select(Organization.ai_settings).where(Organization.id == organization_id)
        )
        return result.scalar_one_or_none()

    async def get_property(self, property_id: str) -> Optional[Property]:
        result = await self.session.execute(select(Property).where(Property.id == property_id))
        return result.scalar_one_or_none()

    async def get_member_ids(self, organization_id: str, roles: Sequence[str]) -> List[str]:
        result = await self.session.execute(
            select(Membership.user_id).where(
                Membership.organization_id == organization_id,
                Membership.role.in_(list(roles)),
            )
        )
        return list(result.scalars().all())


class KnowledgeBaseRepository:
    """Read access to approved question/response pairs."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_context(
        self, organization_id: str, property_id: Optional[str], limit: int = 10
    ) -> List[AIKnowledgeBase]:
        scope = AIKnowledgeBase.property_id.is_(None)
        if property_id:
            scope = or_(scope, AIKnowledgeBase.property_id == property_id)
        result = await self.session.execute(
            select(AIKnowledgeBase)
            .where(AIKnowledgeBase.organization_id == organization_id, scope)
            .order_by(AIKnowledgeBase.usage_count.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class AIResponseRepository:
    """Data access for AI responses (the decision audit trail)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> AIResponse:
        record = AIResponse(**kwargs)
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_id(self, ai_response_id: str) -> Optional[AIResponse]:
        result = await self.session.execute(select(AIResponse).where(AIResponse.id == ai_response_id))
        return result.scalar_one_or_none()

    async def set_message(self, ai_response_id: str, message_id: str) -> None:
        await self.session.execute(
            update(AIResponse).where(AIResponse.id == ai_response_id).values(message_id=message_id)
        )

    async def set_feedback(self, ai_response_id: str, feedback: str) -> bool:
        result = await self.session.execute(
            update(AIResponse).where(AIResponse.id == ai_response_id).values(user_feedback=feedback)
        )
        return result.rowcount > 0

    async def list_by_conversation(self, conversation_id: str) -> List[AIResponse]:
        result = await self.session.execute(
            select(AIResponse)
            .where(AIResponse.conversation_id == conversation_id)
            .order_by(AIResponse.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_latest_suggestion(self, conversation_id: str) -> Optional[AIResponse]:
        result = await self.session.execute(
            select(AIResponse)
            .where(
                AIResponse.conversation_id == conversation_id,
                AIResponse.action_taken.in_(["suggested", "escalated"]),
                AIResponse.user_feedback.is_(None),
            )
            .order_by(AIResponse.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_stats(self, organization_id: str, start: datetime, end: datetime) -> Dict[str, Any]:
        """Per-action counts and average confidence for an organization."""
        result = await self.session.execute(
            select(
                func.count(AIResponse.id).label("total"),
                func.sum(case((AIResponse.action_taken == "auto_sent", 1), else_=0)).label("auto_sent"),
                func.sum(case((AIResponse.action_taken == "suggested", 1), else_=0)).label("suggested"),
                func.sum(case((AIResponse.action_taken == "escalated", 1), else_=0)).label("escalated"),
                func.avg(AIResponse.confidence_score).label("avg_confidence"),
            )
            .join(Conversation, AIResponse.conversation_id == Conversation.id)
            .where(
                Conversation.organization_id == organization_id,
                AIResponse.created_at >= start,
                AIResponse.created_at <= end,
            )
        )
        row = result.one()
        return {
            "total": row.total or 0,
            "auto_sent": int(row.auto_sent or 0),
            "suggested": int(row.suggested or 0),
            "escalated": int(row.escalated or 0),
            "avg_confidence": float(row.avg_confidence) if row.avg_confidence is not None else 0.0,
        }


class NotificationRepository:
    """Data access for notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Notification:
        notif = Notification(**kwargs)
        self.session.add(notif)
        await self.session.flush()
        return notif

    async def get_for_response(self, user_id: str, ai_response_id: str) -> Optional[Notification]:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id, Notification.ai_response_id == ai_response_id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read == False)  # noqa: E712
        q = q.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def mark_read(self, notification_id: str) -> bool:
        result = await self.session.execute(
            update(Notification).where(Notification.id == notification_id).values(is_read=True)
        )
        return result.rowcount > 0
