"""
LLM Orchestration Module for the Alba conciergerie service.

This module handles:
- LLM provider abstraction (OpenAI, Bedrock)
- Prompt template management
- Response parsing and the generation pipeline

Pipeline classes are imported from their submodules
(llm.orchestrator, llm.effect_executor, llm.prompt_templates).
"""

from .errors import GenerationError, PersistenceError, PipelineError, ResponseParseError
from .response_parser import GeneratedResponse, ResponseParser

__all__ = [
    "GeneratedResponse",
    "GenerationError",
    "PersistenceError",
    "PipelineError",
    "ResponseParseError",
    "ResponseParser",
]
