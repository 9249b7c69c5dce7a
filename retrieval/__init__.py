"""
Retrieval Module for the Alba conciergerie service.

Gathers the conversation, property, knowledge base and organization
settings needed to answer a guest message.
"""

from .context_builder import (
    ConversationContextBuilder,
    OrgSettings,
    PromptContext,
    PropertyContext,
    detect_language,
)

__all__ = [
    "ConversationContextBuilder",
    "OrgSettings",
    "PromptContext",
    "PropertyContext",
    "detect_language",
]
