"""
OpenAI LLM Provider.
"""

import asyncio
import logging
import time
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from ..errors import GenerationError
from .base import CompletionResult

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """
    OpenAI LLM provider.

    Requests JSON-object output so the reply can be parsed strictly.
    """

    DEFAULT_MODEL = "gpt-4-turbo-preview"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_id: str = DEFAULT_MODEL,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model_id: Model ID
            max_tokens: Maximum output tokens
            temperature: Generation temperature
            timeout_seconds: Bound on a single completion call
            client: Pre-built async client (tests inject a fake here)
        """
        if client is None:
            client = AsyncOpenAI(api_key=api_key) if api_key else AsyncOpenAI()
        self._client = client

        self.model_id = model_id
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

        logger.info(f"OpenAI provider initialized: {model_id}")

    async def complete(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResult:
        """
        Generate a structured completion.

        Args:
            system: System prompt
            prompt: User prompt
            model: Override model
            max_tokens: Override max tokens
            temperature: Override temperature

        Returns:
            CompletionResult with raw JSON content and usage

        Raises:
            GenerationError: On service failure, timeout or empty output
        """
        model_id = model or self.model_id
        start = time.perf_counter()

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model_id,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=max_tokens or self.max_tokens,
                    temperature=temperature if temperature is not None else self.temperature,
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"OpenAI completion timed out after {self.timeout_seconds}s")
            raise GenerationError("Language model timed out", f"timeout after {self.timeout_seconds}s")
        except OpenAIError as e:
            logger.error(f"OpenAI generation failed: {e}")
            raise GenerationError("Language model request failed", str(e)) from e

        latency_ms = int((time.perf_counter() - start) * 1000)

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Language model returned no content")

        usage = response.usage
        return CompletionResult(
            content=content,
            model=response.model or model_id,
            usage={
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
                "total_tokens": getattr(usage, "total_tokens", 0) or 0,
            },
            latency_ms=latency_ms,
        )
