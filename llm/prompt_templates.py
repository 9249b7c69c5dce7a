"""
Prompt Templates for the Alba conciergerie assistant.

Renders a conversation context into the (system, user) instruction pair
sent to the language model. Rendering is deterministic: the same context
always yields the same prompts.
"""

from typing import List, Sequence, Tuple

from llm.conversation_store import KnowledgeBaseEntry, MessageRecord
from retrieval.context_builder import PromptContext, PropertyContext


class PromptTemplates:
    """
    Manages prompt templates for guest replies.

    Templates are designed for short-term rental hosting: answer in the
    guest's language, stay factual, and return a strict JSON record.
    """

    HISTORY_LIMIT = 10
    KNOWLEDGE_LIMIT = 5

    SYSTEM_PROMPT = """You are a professional assistant for a short-term rental host. You help answer guest messages in a warm but professional manner.

IMPORTANT RULES:
1. ALWAYS answer in the guest's language (French or English)
2. Be warm but professional
3. NEVER make promises you cannot keep
4. If you are not sure about a piece of information, say that you will check rather than make it up
5. Use the property information when relevant
6. Rely on previously approved responses whenever possible

RESPONSE FORMAT (JSON):
{
  "response": "your reply to the guest",
  "confidence": 0.85,
  "reasoning": "explanation of your confidence level",
  "detected_intent": "question type (check_in, check_out, amenities, location, booking, issue, other)"
}

CONFIDENCE SCALE:
- 0.9-1.0: Simple question, answer in the knowledge base
- 0.7-0.9: Standard question, answer based on property information
- 0.5-0.7: Complex question, may need verification
- 0.0-0.5: Out-of-scope question or missing information"""

    LANGUAGE_INSTRUCTIONS = {
        "fr": "Réponds en FRANÇAIS.",
        "en": "Respond in ENGLISH.",
    }

    TONE_INSTRUCTIONS = {
        "professional": "Tone: Professional but warm, courteous and efficient.",
        "friendly": "Tone: Friendly and relaxed, use warm wording.",
        "casual": "Tone: Casual and informal, like a friend helping out.",
    }

    USER_TEMPLATE = """{language_instruction}

{tone_instruction}

## PROPERTY INFORMATION
{property_info}

## KNOWLEDGE BASE (approved responses)
{knowledge}

## CONVERSATION HISTORY
{history}

## CURRENT GUEST MESSAGE
{guest_message}

---

Analyze the guest message and generate an appropriate reply.
Reminder: answer in JSON with response, confidence, reasoning, and detected_intent."""

    NO_KNOWLEDGE = "No approved responses available."
    NO_HISTORY = "No history (first conversation)"

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT

    @classmethod
    def get_language_instruction(cls, language: str) -> str:
        return cls.LANGUAGE_INSTRUCTIONS["fr" if language == "fr" else "en"]

    @classmethod
    def get_tone_instruction(cls, tone: str) -> str:
        return cls.TONE_INSTRUCTIONS.get(tone, cls.TONE_INSTRUCTIONS["professional"])

    @staticmethod
    def format_property(prop: PropertyContext) -> str:
        parts = [f"Name: {prop.name}"]
        if prop.description:
            parts.append(f"Description: {prop.description}")
        if prop.check_in_instructions:
            parts.append(f"Check-in instructions: {prop.check_in_instructions}")
        if prop.house_rules:
            parts.append(f"House rules: {prop.house_rules}")
        if prop.amenities:
            parts.append(f"Amenities: {', '.join(prop.amenities)}")
        return "\n".join(parts)

    @classmethod
    def format_history(cls, history: Sequence[MessageRecord]) -> str:
        if not history:
            return cls.NO_HISTORY
        lines: List[str] = []
        for msg in list(history)[-cls.HISTORY_LIMIT:]:
            role = "GUEST" if msg.source == "guest" else "HOST"
            lines.append(f"{role}: {msg.content}")
        return "\n\n".join(lines)

    @classmethod
    def format_knowledge_base(cls, entries: Sequence[KnowledgeBaseEntry]) -> str:
        if not entries:
            return cls.NO_KNOWLEDGE
        return "\n\n".join(
            f"{i}. Question type: {entry.question_pattern}\n   Response: {entry.approved_response}"
            for i, entry in enumerate(list(entries)[:cls.KNOWLEDGE_LIMIT], start=1)
        )

    @classmethod
    def build_user_prompt(cls, context: PromptContext) -> str:
        """
        Build the user instruction for a guest reply.

        Args:
            context: Conversation context for this turn

        Returns:
            Formatted user prompt
        """
        return cls.USER_TEMPLATE.format(
            language_instruction=cls.get_language_instruction(context.guest_language),
            tone_instruction=cls.get_tone_instruction(context.org_settings.tone),
            property_info=cls.format_property(context.property_context),
            knowledge=cls.format_knowledge_base(context.knowledge_base),
            history=cls.format_history(context.conversation_history),
            guest_message=context.guest_message,
        )

    @classmethod
    def build(cls, context: PromptContext) -> Tuple[str, str]:
        """Return the (system, user) instruction pair for a context."""
        return cls.get_system_prompt(), cls.build_user_prompt(context)
