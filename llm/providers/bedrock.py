"""
AWS Bedrock LLM Provider.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import GenerationError
from .base import CompletionResult

logger = logging.getLogger(__name__)


class BedrockProvider:
    """
    AWS Bedrock LLM provider.

    Supports Claude models via Bedrock. Claude has no JSON response mode,
    so the assistant turn is prefilled with "{" to force a JSON object.
    """

    DEFAULT_MODEL = "us.anthropic.claude-sonnet-4-20250514-v1:0"

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        region: str = "us-east-1",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        client: Any = None,
    ):
        """
        Initialize Bedrock provider.

        Args:
            model_id: Bedrock model ID
            region: AWS region
            max_tokens: Maximum tokens for response
            temperature: Generation temperature
            timeout_seconds: Bound on a single completion call
            client: Pre-built bedrock-runtime client
        """
        self.model_id = model_id
        self.region = region
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

        self._client = client or boto3.client("bedrock-runtime", region_name=region)
        logger.info(f"Bedrock provider initialized: {model_id} in {region}")

    def _invoke(self, model_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self._client.invoke_model(
            modelId=model_id,
            body=json.dumps(body),
            contentType="application/json",
            accept="application/json",
        )
        return json.loads(response["body"].read())

    async def complete(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResult:
        """Generate a structured completion; see OpenAIProvider.complete."""
        model_id = model or self.model_id
        body = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "system": system,
            "messages": [
                {"role": "user", "content": [{"type": "text", "text": prompt}]},
                {"role": "assistant", "content": [{"type": "text", "text": "{"}]},
            ],
        }

        start = time.perf_counter()
        try:
            response_body = await asyncio.wait_for(
                asyncio.to_thread(self._invoke, model_id, body),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Bedrock completion timed out after {self.timeout_seconds}s")
            raise GenerationError("Language model timed out", f"timeout after {self.timeout_seconds}s")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Bedrock API error: {e}")
            raise GenerationError("Language model request failed", str(e)) from e
        except ValueError as e:
            logger.error(f"Bedrock returned a malformed body: {e}")
            raise GenerationError("Language model returned a malformed body", str(e)) from e

        latency_ms = int((time.perf_counter() - start) * 1000)

        blocks = response_body.get("content") or []
        if not blocks:
            logger.warning("Empty response from Bedrock")
            raise GenerationError("Language model returned no content")

        usage = response_body.get("usage", {})
        prompt_tokens = usage.get("input_tokens", 0)
        completion_tokens = usage.get("output_tokens", 0)
        return CompletionResult(
            content="{" + blocks[0].get("text", ""),
            model=model_id,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
            latency_ms=latency_ms,
        )
