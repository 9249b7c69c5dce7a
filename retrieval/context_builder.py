"""
Conversation Context Builder for the Alba conciergerie service.

Assembles a bounded snapshot of one conversation turn for LLM consumption:
property facts, approved Q/A pairs, message history, organization tone and
threshold settings, and the guest message being answered.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from llm.conversation_store import (
    ConversationRecord,
    KnowledgeBaseEntry,
    MessageRecord,
    PipelineStore,
    PropertyRecord,
)

logger = logging.getLogger(__name__)

UNSPECIFIED_PROPERTY_NAME = "Not specified"

SUPPORTED_TONES = ("professional", "friendly", "casual")

FRENCH_INDICATORS = (
    "bonjour", "merci", "salut", "bienvenue", "appartement",
    "logement", "arrivée", "départ", "clé", "clef", "comment",
    "quand", "où", "pourquoi", "est-ce que", "s'il vous plaît",
)


def detect_language(text: str) -> str:
    """Return "fr" when the text carries two or more French indicators, else "en"."""
    lower = text.lower()
    french_count = sum(1 for word in FRENCH_INDICATORS if word in lower)
    return "fr" if french_count >= 2 else "en"


@dataclass
class PropertyContext:
    """Descriptive property fields shown to the model."""
    name: str
    description: Optional[str] = None
    check_in_instructions: Optional[str] = None
    house_rules: Optional[str] = None
    amenities: List[str] = field(default_factory=list)
    is_specified: bool = True

    @classmethod
    def unspecified(cls) -> "PropertyContext":
        return cls(name=UNSPECIFIED_PROPERTY_NAME, is_specified=False)

    @classmethod
    def from_record(cls, prop: PropertyRecord) -> "PropertyContext":
        return cls(
            name=prop.name,
            description=prop.description,
            check_in_instructions=prop.check_in_instructions,
            house_rules=prop.house_rules,
            amenities=list(prop.amenities or []),
        )

    @property
    def has_details(self) -> bool:
        return self.is_specified and bool(
            self.description or self.check_in_instructions or self.house_rules or self.amenities
        )


@dataclass
class OrgSettings:
    """Per-organization generation settings."""
    tone: str = "professional"
    auto_send_threshold: float = 0.85
    signature: str = ""

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]], default_threshold: float = 0.85) -> "OrgSettings":
        if not raw:
            return cls(auto_send_threshold=default_threshold)
        tone = raw.get("tone") or "professional"
        if tone not in SUPPORTED_TONES:
            logger.warning(f"Unknown tone '{tone}', using professional")
            tone = "professional"
        threshold = raw.get("auto_send_threshold")
        return cls(
            tone=tone,
            auto_send_threshold=float(threshold) if threshold is not None else default_threshold,
            signature=raw.get("signature") or "",
        )


@dataclass
class PromptContext:
    """Everything the model needs for one conversation turn."""
    conversation: ConversationRecord
    guest_message: str
    guest_language: str
    conversation_history: List[MessageRecord]
    property_context: PropertyContext
    org_settings: OrgSettings
    knowledge_base: List[KnowledgeBaseEntry] = field(default_factory=list)

    @property
    def conversation_id(self) -> str:
        return self.conversation.id

    @property
    def has_property_info(self) -> bool:
        return self.property_context.has_details

    @property
    def conversation_length(self) -> int:
        return len(self.conversation_history)


class ConversationContextBuilder:
    """
    Builds the prompt context for a conversation.

    Returns None when there is no guest message to answer; this is an
    expected outcome (e.g. the host opened the thread) and callers must
    not proceed to generation.
    """

    def __init__(
        self,
        store: PipelineStore,
        knowledge_base_limit: int = 10,
        default_threshold: float = 0.85,
    ):
        self.store = store
        self.knowledge_base_limit = knowledge_base_limit
        self.default_threshold = default_threshold

    async def build(
        self,
        conversation_id: str,
        conversation: Optional[ConversationRecord] = None,
    ) -> Optional[PromptContext]:
        """
        Build context for a conversation.

        Args:
            conversation_id: Conversation to answer
            conversation: Already-loaded conversation record, if any

        Returns:
            PromptContext, or None when there is nothing to answer
        """
        if not conversation_id:
            raise ValueError("conversation_id is required")

        if conversation is None:
            conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            logger.warning(f"Conversation not found: {conversation_id}")
            return None

        history = await self.store.get_messages(conversation_id)
        guest_messages = [m for m in history if m.source == "guest"]
        if not guest_messages:
            logger.info(f"No guest message to answer in conversation {conversation_id}")
            return None

        property_context = PropertyContext.unspecified()
        if conversation.property_id:
            prop = await self.store.get_property(conversation.property_id)
            if prop:
                property_context = PropertyContext.from_record(prop)

        raw_settings = await self.store.get_org_ai_settings(conversation.organization_id)
        org_settings = OrgSettings.from_dict(raw_settings, self.default_threshold)

        knowledge_base = await self.store.get_knowledge_base(
            conversation.organization_id,
            conversation.property_id,
            self.knowledge_base_limit,
        )

        context = PromptContext(
            conversation=conversation,
            guest_message=guest_messages[-1].content,
            guest_language=conversation.language or "fr",
            conversation_history=history,
            property_context=property_context,
            org_settings=org_settings,
            knowledge_base=knowledge_base,
        )
        logger.debug(
            f"Context built for {conversation_id}: {len(history)} messages, "
            f"{len(knowledge_base)} knowledge entries"
        )
        return context
