"""
In-memory PipelineStore for the Alba conciergerie service.

Used when no DATABASE_URL is configured and by the test suite.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .conversation_store import (
    AIResponseRecord,
    ConversationRecord,
    KnowledgeBaseEntry,
    MessageRecord,
    NotificationRecord,
    PropertyRecord,
    summarize_ai_responses,
)

logger = logging.getLogger(__name__)


def _uuid() -> str:
    return str(uuid.uuid4())


class InMemoryStore:
    """Dictionary-backed store. Not shared across processes."""

    def __init__(self):
        self._organizations: Dict[str, Dict[str, Any]] = {}
        self._members: List[Dict[str, str]] = []
        self._properties: Dict[str, PropertyRecord] = {}
        self._knowledge_base: Dict[str, List[KnowledgeBaseEntry]] = {}
        self._conversations: Dict[str, ConversationRecord] = {}
        self._messages: Dict[str, MessageRecord] = {}
        self._ai_responses: Dict[str, AIResponseRecord] = {}
        self._notifications: Dict[str, NotificationRecord] = {}

    # ── Seeding (organization-side data the pipeline only reads) ────

    def add_organization(
        self, organization_id: str, name: str = "", ai_settings: Optional[Dict[str, Any]] = None
    ) -> None:
        self._organizations[organization_id] = {"name": name, "ai_settings": ai_settings}

    def add_member(self, organization_id: str, user_id: str, role: str = "member") -> None:
        self._members.append({"organization_id": organization_id, "user_id": user_id, "role": role})

    def add_property(self, prop: PropertyRecord) -> None:
        self._properties[prop.id] = prop

    def add_knowledge_entry(self, organization_id: str, entry: KnowledgeBaseEntry) -> None:
        self._knowledge_base.setdefault(organization_id, []).append(entry)

    # ── Conversations ───────────────────────────────────────────────

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        return self._conversations.get(conversation_id)

    async def find_conversation_by_thread(
        self, organization_id: str, thread_id: str
    ) -> Optional[ConversationRecord]:
        for conv in self._conversations.values():
            if conv.organization_id == organization_id and conv.thread_id == thread_id:
                return conv
        return None

    async def create_conversation(self, organization_id: str, **fields: Any) -> ConversationRecord:
        conv = ConversationRecord(
            id=fields.pop("id", None) or _uuid(),
            organization_id=organization_id,
            **fields,
        )
        self._conversations[conv.id] = conv
        return conv

    async def update_conversation(self, conversation_id: str, **fields: Any) -> bool:
        conv = self._conversations.get(conversation_id)
        if not conv:
            return False
        self._conversations[conversation_id] = replace(conv, **fields)
        return True

    async def increment_unread(self, conversation_id: str, last_message_at: datetime) -> None:
        conv = self._conversations.get(conversation_id)
        if conv:
            self._conversations[conversation_id] = replace(
                conv, unread_count=conv.unread_count + 1, last_message_at=last_message_at
            )

    # ── Messages ────────────────────────────────────────────────────

    async def get_messages(self, conversation_id: str) -> List[MessageRecord]:
        messages = [m for m in self._messages.values() if m.conversation_id == conversation_id]
        return sorted(messages, key=lambda m: m.created_at)

    async def get_message(self, message_id: str) -> Optional[MessageRecord]:
        return self._messages.get(message_id)

    async def find_message_by_external_id(self, external_message_id: str) -> Optional[MessageRecord]:
        for msg in self._messages.values():
            if msg.external_message_id == external_message_id:
                return msg
        return None

    async def find_message_for_ai_response(self, ai_response_id: str) -> Optional[MessageRecord]:
        for msg in self._messages.values():
            if msg.metadata.get("ai_response_id") == ai_response_id:
                return msg
        return None

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
        msg = MessageRecord(
            id=_uuid(),
            conversation_id=conversation_id,
            source=source,
            content=content,
            status=status,
            external_message_id=external_message_id,
            sent_by_user_id=sent_by_user_id,
            metadata=dict(metadata or {}),
            created_at=created_at or datetime.utcnow(),
        )
        self._messages[msg.id] = msg
        conv = self._conversations.get(conversation_id)
        if conv:
            self._conversations[conversation_id] = replace(conv, last_message_at=msg.created_at)
        return msg

    async def update_message_status(
        self, message_id: str, status: str, external_message_id: Optional[str] = None
    ) -> None:
        msg = self._messages.get(message_id)
        if not msg:
            return
        self._messages[message_id] = replace(
            msg,
            status=status,
            external_message_id=external_message_id or msg.external_message_id,
        )

    # ── Property / organization / knowledge base ────────────────────

    async def get_property(self, property_id: str) -> Optional[PropertyRecord]:
        return self._properties.get(property_id)

    async def get_org_ai_settings(self, organization_id: str) -> Optional[Dict[str, Any]]:
        org = self._organizations.get(organization_id)
        return org["ai_settings"] if org else None

    async def get_knowledge_base(
        self, organization_id: str, property_id: Optional[str], limit: int
    ) -> List[KnowledgeBaseEntry]:
        entries = [
            e for e in self._knowledge_base.get(organization_id, [])
            if e.property_id is None or e.property_id == property_id
        ]
        entries.sort(key=lambda e: e.usage_count, reverse=True)
        return entries[:limit]

    async def list_member_ids(self, organization_id: str, roles: Sequence[str]) -> List[str]:
        return [
            m["user_id"] for m in self._members
            if m["organization_id"] == organization_id and m["role"] in roles
        ]

    # ── AI responses ────────────────────────────────────────────────

    async def create_ai_response(self, conversation_id: str, **fields: Any) -> AIResponseRecord:
        record = AIResponseRecord(id=_uuid(), conversation_id=conversation_id, **fields)
        self._ai_responses[record.id] = record
        return record

    async def get_ai_response(self, ai_response_id: str) -> Optional[AIResponseRecord]:
        return self._ai_responses.get(ai_response_id)

    async def link_ai_response_message(self, ai_response_id: str, message_id: str) -> None:
        record = self._ai_responses.get(ai_response_id)
        if record:
            self._ai_responses[ai_response_id] = replace(record, message_id=message_id)

    async def set_ai_response_feedback(
        self, ai_response_id: str, feedback: str
    ) -> Optional[AIResponseRecord]:
        record = self._ai_responses.get(ai_response_id)
        if not record:
            return None
        record = replace(record, user_feedback=feedback)
        self._ai_responses[ai_response_id] = record
        return record

    async def list_ai_responses(self, conversation_id: str) -> List[AIResponseRecord]:
        records = [r for r in self._ai_responses.values() if r.conversation_id == conversation_id]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def get_latest_suggestion(self, conversation_id: str) -> Optional[AIResponseRecord]:
        for record in await self.list_ai_responses(conversation_id):
            if record.action_taken in ("suggested", "escalated") and record.user_feedback is None:
                return record
        return None

    async def get_ai_response_stats(
        self, organization_id: str, start: datetime, end: datetime
    ) -> Dict[str, Any]:
        records = [
            r for r in self._ai_responses.values()
            if start <= r.created_at <= end
            and r.conversation_id in self._conversations
            and self._conversations[r.conversation_id].organization_id == organization_id
        ]
        return summarize_ai_responses(records)

    # ── Notifications ───────────────────────────────────────────────

    async def find_notification(self, user_id: str, ai_response_id: str) -> Optional[NotificationRecord]:
        for notif in self._notifications.values():
            if notif.user_id == user_id and notif.ai_response_id == ai_response_id:
                return notif
        return None

    async def create_notification(self, user_id: str, **fields: Any) -> NotificationRecord:
        notif = NotificationRecord(id=_uuid(), user_id=user_id, **fields)
        self._notifications[notif.id] = notif
        return notif

    async def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[NotificationRecord]:
        notifs = [
            n for n in self._notifications.values()
            if n.user_id == user_id and not (unread_only and n.is_read)
        ]
        notifs.sort(key=lambda n: n.created_at, reverse=True)
        return notifs[:limit]

    async def mark_notification_read(self, notification_id: str) -> bool:
        notif = self._notifications.get(notification_id)
        if not notif:
            return False
        self._notifications[notification_id] = replace(notif, is_read=True)
        return True

    # ── Inspection helpers ──────────────────────────────────────────

    def all_messages(self) -> List[MessageRecord]:
        return list(self._messages.values())

    def all_notifications(self) -> List[NotificationRecord]:
        return list(self._notifications.values())

    def all_ai_responses(self) -> List[AIResponseRecord]:
        return list(self._ai_responses.values())
