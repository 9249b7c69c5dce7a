"""
LLM Provider implementations.
"""

from .base import CompletionProvider, CompletionResult
from .bedrock import BedrockProvider
from .openai_provider import OpenAIProvider

__all__ = ["BedrockProvider", "CompletionProvider", "CompletionResult", "OpenAIProvider"]
