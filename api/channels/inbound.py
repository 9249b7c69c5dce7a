"""
Inbound guest-message ingestion.

Turns a normalized mail-relay event into a conversation and a delivered
guest message. Automatic generation is requested by the caller when the
result says so.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from llm.conversation_store import PipelineStore
from retrieval.context_builder import detect_language

logger = logging.getLogger(__name__)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; convert aware values from the relay."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class InboundEmail:
    """Guest email as delivered by the mail-relay connector."""
    organization_id: str
    thread_id: str
    external_message_id: str
    body: str
    from_address: Optional[str] = None
    subject: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    property_id: Optional[str] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    received_at: Optional[datetime] = None


@dataclass
class IngestResult:
    conversation_id: str
    message_id: Optional[str] = None
    created_conversation: bool = False
    duplicate: bool = False
    generate: bool = False

    def to_dict(self) -> dict:
        return {
            "conversation_id": self.conversation_id,
            "message_id": self.message_id,
            "created_conversation": self.created_conversation,
            "duplicate": self.duplicate,
            "generation_scheduled": self.generate,
        }


class GuestMessageIngestor:
    """Stores inbound guest messages, one conversation per mail thread."""

    def __init__(self, store: PipelineStore):
        self.store = store

    async def ingest(self, event: InboundEmail) -> IngestResult:
        """
        Ingest one guest email.

        Args:
            event: Normalized inbound email

        Returns:
            IngestResult; generate is True when an automatic reply should run
        """
        received_at = as_naive_utc(event.received_at) or datetime.utcnow()

        existing = await self.store.find_message_by_external_id(event.external_message_id)
        if existing:
            logger.info(f"Duplicate inbound message {event.external_message_id} ignored")
            return IngestResult(
                conversation_id=existing.conversation_id,
                message_id=existing.id,
                duplicate=True,
            )

        conversation = await self.store.find_conversation_by_thread(event.organization_id, event.thread_id)
        created = False
        if conversation is None:
            conversation = await self.store.create_conversation(
                event.organization_id,
                property_id=event.property_id,
                guest_name=event.guest_name,
                guest_email=event.guest_email or event.from_address,
                thread_id=event.thread_id,
                subject=event.subject,
                check_in_date=as_naive_utc(event.check_in_date),
                check_out_date=as_naive_utc(event.check_out_date),
                status="active",
                language=detect_language(event.body),
                last_message_at=received_at,
                unread_count=0,
            )
            created = True
            logger.info(f"Conversation {conversation.id} created for thread {event.thread_id}")

        message = await self.store.create_message(
            conversation_id=conversation.id,
            source="guest",
            content=event.body,
            status="delivered",
            external_message_id=event.external_message_id,
            metadata={"subject": event.subject, "from": event.from_address},
            created_at=received_at,
        )
        await self.store.increment_unread(conversation.id, received_at)

        return IngestResult(
            conversation_id=conversation.id,
            message_id=message.id,
            created_conversation=created,
            generate=not conversation.ai_disabled,
        )
