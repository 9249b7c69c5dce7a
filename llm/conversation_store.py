"""
Storage protocol for the AI response pipeline.

Abstracts persistence so the pipeline can work with either the
in-memory store or the database backend. Records are plain dataclasses
so nothing downstream depends on an ORM session.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable


@dataclass
class ConversationRecord:
    id: str
    organization_id: str
    property_id: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    thread_id: Optional[str] = None
    subject: Optional[str] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    status: str = "active"
    language: str = "fr"
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    ai_disabled: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class MessageRecord:
    id: str
    conversation_id: str
    source: str  # guest, host, ai, system
    content: str
    status: str = "pending"  # pending, sent, delivered, failed
    external_message_id: Optional[str] = None
    sent_by_user_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class PropertyRecord:
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    check_in_instructions: Optional[str] = None
    house_rules: Optional[str] = None
    amenities: List[str] = field(default_factory=list)


@dataclass
class KnowledgeBaseEntry:
    question_pattern: str
    approved_response: str
    usage_count: int = 0
    success_rate: float = 0.0
    property_id: Optional[str] = None
    id: Optional[str] = None


@dataclass
class AIResponseRecord:
    id: str
    conversation_id: str
    generated_content: str
    confidence_score: float
    action_taken: str  # auto_sent, suggested, escalated
    reasoning: Optional[str] = None
    detected_intent: Optional[str] = None
    model_used: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    response_time_ms: Optional[int] = None
    message_id: Optional[str] = None
    user_feedback: Optional[str] = None  # approved, edited, rejected
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class NotificationRecord:
    id: str
    user_id: str
    type: str
    title: str
    organization_id: Optional[str] = None
    ai_response_id: Optional[str] = None
    content: Optional[str] = None
    link: Optional[str] = None
    channel: str = "in_app"
    is_read: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


def summarize_ai_responses(records: Sequence[AIResponseRecord]) -> Dict[str, Any]:
    """Aggregate action counts and average confidence."""
    total = len(records)
    return {
        "total": total,
        "auto_sent": sum(1 for r in records if r.action_taken == "auto_sent"),
        "suggested": sum(1 for r in records if r.action_taken == "suggested"),
        "escalated": sum(1 for r in records if r.action_taken == "escalated"),
        "avg_confidence": (
            sum(r.confidence_score or 0.0 for r in records) / total if total else 0.0
        ),
    }


@runtime_checkable
class PipelineStore(Protocol):
    """Protocol for everything the pipeline reads and writes."""

    # Conversations
    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        ...

    async def find_conversation_by_thread(
        self, organization_id: str, thread_id: str
    ) -> Optional[ConversationRecord]:
        ...

    async def create_conversation(self, organization_id: str, **fields: Any) -> ConversationRecord:
        ...

    async def update_conversation(self, conversation_id: str, **fields: Any) -> bool:
        ...

    async def increment_unread(self, conversation_id: str, last_message_at: datetime) -> None:
        ...

    # Messages
    async def get_messages(self, conversation_id: str) -> List[MessageRecord]:
        """Full history, oldest first."""
        ...

    async def get_message(self, message_id: str) -> Optional[MessageRecord]:
        ...

    async def find_message_by_external_id(self, external_message_id: str) -> Optional[MessageRecord]:
        ...

    async def find_message_for_ai_response(self, ai_response_id: str) -> Optional[MessageRecord]:
        ...

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
        ...

    async def update_message_status(
        self, message_id: str, status: str, external_message_id: Optional[str] = None
    ) -> None:
        ...

    # Property / organization / knowledge base (read-only)
    async def get_property(self, property_id: str) -> Optional[PropertyRecord]:
        ...

    async def get_org_ai_settings(self, organization_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_knowledge_base(
        self, organization_id: str, property_id: Optional[str], limit: int
    ) -> List[KnowledgeBaseEntry]:
        """Entries scoped to the org (and property), highest usage first."""
        ...

    async def list_member_ids(self, organization_id: str, roles: Sequence[str]) -> List[str]:
        ...

    # AI responses
    async def create_ai_response(self, conversation_id: str, **fields: Any) -> AIResponseRecord:
        ...

    async def get_ai_response(self, ai_response_id: str) -> Optional[AIResponseRecord]:
        ...

    async def link_ai_response_message(self, ai_response_id: str, message_id: str) -> None:
        ...

    async def set_ai_response_feedback(
        self, ai_response_id: str, feedback: str
    ) -> Optional[AIResponseRecord]:
        ...

    async def list_ai_responses(self, conversation_id: str) -> List[AIResponseRecord]:
        """Newest first."""
        ...

    async def get_latest_suggestion(self, conversation_id: str) -> Optional[AIResponseRecord]:
        ...

    async def get_ai_response_stats(
        self, organization_id: str, start: datetime, end: datetime
    ) -> Dict[str, Any]:
        ...

    # Notifications
    async def find_notification(self, user_id: str, ai_response_id: str) -> Optional[NotificationRecord]:
        ...

    async def create_notification(self, user_id: str, **fields: Any) -> NotificationRecord:
        ...

    async def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> List[NotificationRecord]:
        ...

    async def mark_notification_read(self, notification_id: str) -> bool:
        ...
