"""
Database-backed PipelineStore for the Alba conciergerie service.

Implements the PipelineStore protocol using the repository layer.
Every operation runs in its own short transaction.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import AIKnowledgeBase, AIResponse, Conversation, Message, Notification, Property
from database.repositories import (
    AIResponseRepository,
    ConversationRepository,
    KnowledgeBaseRepository,
    NotificationRepository,
    OrganizationRepository,
)
from database.session import session_scope
from .conversation_store import (
    AIResponseRecord,
    ConversationRecord,
    KnowledgeBaseEntry,
    MessageRecord,
    NotificationRecord,
    PropertyRecord,
)

logger = logging.getLogger(__name__)


def _conversation(row: Conversation) -> ConversationRecord:
    return ConversationRecord(
        id=row.id,
        organization_id=row.organization_id,
        property_id=row.property_id,
        guest_name=row.guest_name,
        guest_email=row.guest_email,
        thread_id=row.thread_id,
        subject=row.subject,
        check_in_date=row.check_in_date,
        check_out_date=row.check_out_date,
        status=row.status or "active",
        language=row.language or "fr",
        last_message_at=row.last_message_at,
        unread_count=row.unread_count or 0,
        ai_disabled=bool(row.ai_disabled),
        created_at=row.created_at or datetime.utcnow(),
    )


def _message(row: Message) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        conversation_id=row.conversation_id,
        source=row.source,
        content=row.content,
        status=row.status or "pending",
        external_message_id=row.external_message_id,
        sent_by_user_id=row.sent_by_user_id,
        metadata=dict(row.metadata_json or {}),
        created_at=row.created_at or datetime.utcnow(),
    )


def _property(row: Property) -> PropertyRecord:
    return PropertyRecord(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        description=row.description,
        check_in_instructions=row.check_in_instructions,
        house_rules=row.house_rules,
        amenities=list(row.amenities or []),
    )


def _knowledge(row: AIKnowledgeBase) -> KnowledgeBaseEntry:
    return KnowledgeBaseEntry(
        id=row.id,
        property_id=row.property_id,
        question_pattern=row.question_pattern,
        approved_response=row.approved_response,
        usage_count=row.usage_count or 0,
        success_rate=row.success_rate or 0.0,
    )


def _ai_response(row: AIResponse) -> AIResponseRecord:
    return AIResponseRecord(
        id=row.id,
        conversation_id=row.conversation_id,
        generated_content=row.generated_content,
        confidence_score=row.confidence_score,
        action_taken=row.action_taken,
        reasoning=row.reasoning,
        detected_intent=row.detected_intent,
        model_used=row.model_used,
        prompt_tokens=row.prompt_tokens,
        completion_tokens=row.completion_tokens,
        response_time_ms=row.response_time_ms,
        message_id=row.message_id,
        user_feedback=row.user_feedback,
        created_at=row.created_at or datetime.utcnow(),
    )


def _notification(row: Notification) -> NotificationRecord:
    return NotificationRecord(
        id=row.id,
        user_id=row.user_id,
        organization_id=row.organization_id,
        ai_response_id=row.ai_response_id,
        type=row.type,
        title=row.title,
        content=row.content,
        link=row.link,
        channel=row.channel or "in_app",
        is_read=bool(row.is_read),
        created_at=row.created_at or datetime.utcnow(),
    )


class DbPipelineStore:
    """Persistent pipeline store backed by PostgreSQL or SQLite."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _session(self):
        return session_scope(self._session_factory)

    # ── Conversations ───────────────────────────────────────────────

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        async with self._session() as session:
            row = await ConversationRepository(session).get_by_id(conversation_id)
            return _conversation(row) if row else None

    async def find_conversation_by_thread(
        self, organization_id: str, thread_id: str
    ) -> Optional[ConversationRecord]:
        async with self._session() as session:
            row = await ConversationRepository(session).get_by_thread(organization_id, thread_id)
            return _conversation(row) if row else None

    async def create_conversation(self, organization_id: str, **fields: Any) -> ConversationRecord:
        async with self._session() as session:
            row = await ConversationRepository(session).create(organization_id=organization_id, **fields)
            return _conversation(row)

    async def update_conversation(self, conversation_id: str, **fields: Any) -> bool:
        async with self._session() as session:
            return await ConversationRepository(session).update(conversation_id, **fields)

    async def increment_unread(self, conversation_id: str, last_message_at: datetime) -> None:
        async with self._session() as session:
            await ConversationRepository(session).increment_unread(conversation_id, last_message_at)

    # ── Messages ────────────────────────────────────────────────────

    async def get_messages(self, conversation_id: str) -> List[MessageRecord]:
        async with self._session() as session:
            rows = await ConversationRepository(session).get_messages(conversation_id)
            return [_message(r) for r in rows]

    async def get_message(self, message_id: str) -> Optional[MessageRecord]:
        async with self._session() as session:
            row = await ConversationRepository(session).get_message(message_id)
            return _message(row) if row else None

    async def find_message_by_external_id(self, external_message_id: str) -> Optional[MessageRecord]:
        async with self._session() as session:
            row = await ConversationRepository(session).get_message_by_external_id(external_message_id)
            return _message(row) if row else None

    async def find_message_for_ai_response(self, ai_response_id: str) -> Optional[MessageRecord]:
        async with self._session() as session:
            record = await AIResponseRepository(session).get_by_id(ai_response_id)
            if not record:
                return None
            repo = ConversationRepository(session)
            if record.message_id:
                row = await repo.get_message(record.message_id)
            else:
                row = await repo.get_ai_message(record.conversation_id, ai_response_id)
            return _message(row) if row else None

    async def create_message(
        self,
        conversation_id: str,
        source: str,
        content: str,
        status: str,
        external_message_id: Optional[str] = None,
        sent_by_user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> MessageRecord:
        async with self._session() as session:
            row = await ConversationRepository(session).add_message(
                conversation_id=conversation_id,
                source=source,
                content=content,
                status=status,
                external_message_id=external_message_id,
                sent_by_user_id=sent_by_user_id,
                metadata_json=metadata,
                created_at=created_at,
            )
            return _message(row)

    async def update_message_status(
        self, message_id: str, status: str, external_message_id: Optional[str] = None
    ) -> None:
        async with self._session() as session:
            await ConversationRepository(session).update_message_status(
                message_id, status, external_message_id
            )

    # ── Property / organization / knowledge base ────────────────────

    async def get_property(self, property_id: str) -> Optional[PropertyRecord]:
        async with self._session() as session:
            row = await OrganizationRepository(session).get_property(property_id)
            return _property(row) if row else None

    async def get_org_ai_settings(self, organization_id: str) -> Optional[Dict[str, Any]]:
        async with self._session() as session:
            return await OrganizationRepository(session).get_ai_settings(organization_id)

    async def get_knowledge_base(
        self, organization_id: str, property_id: Optional[str], limit: int
    ) -> List[KnowledgeBaseEntry]:
        async with self._session() as session:
            rows = await KnowledgeBaseRepository(session).list_for_context(
                organization_id, property_id, limit
            )
            return [_knowledge(r) for r in rows]

    async def list_member_ids(self, organization_id: str, roles: Sequence[str]) -> List[str]:
        async with self._session() as session:
            return await OrganizationRepository(session).get_member_ids(organization_id, roles)

    # ── AI responses ────────────────────────────────────────────────

    async def create_ai_response(self, conversation_id: str, **fields: Any) -> AIResponseRecord:
        async with self._session() as session:
            row = await AIResponseRepository(session).create(conversation_id=conversation_id, **fields)
            return _ai_response(row)

    async def get_ai_response(self, ai_response_id: str) -> Optional[AIResponseRecord]:
        async with self._session() as session:
            row = await AIResponseRepository(session).get_by_id(ai_response_id)
            return _ai_response(row) if row else None

    async def link_ai_response_message(self, ai_response_id: str, message_id: str) -> None:
        async with self._session() as session:
            await AIResponseRepository(session).set_message(ai_response_id, message_id)

    async def set_ai_response_feedback(
        self, ai_response_id: str, feedback: str
    ) -> Optional[AIResponseRecord]:
        async with self._session() as session:
            repo = AIResponseRepository(session)
            if not await repo.set_feedback(ai_response_id, feedback):
                return None
            row = await repo.get_by_id(ai_response_id)
            return _ai_response(row) if row else None

    async def list_ai_responses(self, conversation_id: str) -> List[AIResponseRecord]:
        async with self._session() as session:
            rows = await AIResponseRepository(session).list_by_conversation(conversation_id)
            return [_ai_response(r) for r in rows]

    async def get_latest_suggestion(self, conversation_id: str) -> Optional[AIResponseRecord]:
        async with self._session() as session:
            row = await AIResponseRepository(session).get_latest_suggestion(conversation_id)
            return _ai_response(row) if row else None

    async def get_ai_response_stats(
        self, organization_id: str, start: datetime, end: datetime
    ) -> Dict[str, Any]:
        async with self._session() as session:
            return await AIResponseRepository(session).get_stats(organization_id, start, end)

    # ── Notifications ───────────────────────────────────────────────

    async def find_notification(self, user_id: str, ai_response_id: str) -> Optional[NotificationRecord]:
        async with self._session() as session:
            row = await NotificationRepository(session).get_for_response(user_id, ai_response_id)
            return _notification(row) if row else None

    async def create_notification(self, user_id: str, **fields: Any) -> NotificationRecord:
        async with self._session() as session:
            row = await NotificationRepository(session).create(user_id=user_id, **fields)
            return _notification(row)

    async def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[NotificationRecord]:
        async with self._session() as session:
            rows = await NotificationRepository(session).list_by_user(user_id, unread_only, limit)
            return [_notification(r) for r in rows]

    async def mark_notification_read(self, notification_id: str) -> bool:
        async with self._session() as session:
            return await NotificationRepository(session).mark_read(notification_id)
