"""
Response Orchestrator for the Alba conciergerie service.

Runs one generation turn for a conversation, strictly in order:
context -> prompt -> completion -> parse -> confidence -> action ->
persist -> effects. At most one turn runs per conversation at a time.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from api.middleware.metrics import record_action, record_failure, record_llm_latency
from confidence.action_policy import ActionPolicy
from confidence.evaluator import ConfidenceEvaluator, ConfidenceSignals
from retrieval.context_builder import ConversationContextBuilder
from .conversation_store import AIResponseRecord, PipelineStore
from .effect_executor import EffectExecutor
from .errors import GenerationError, PersistenceError, ResponseParseError
from .prompt_templates import PromptTemplates
from .providers.base import CompletionProvider
from .response_parser import ResponseParser

logger = logging.getLogger(__name__)

FEEDBACK_VERDICTS = ("approved", "edited", "rejected")


class ConversationLocks:
    """One asyncio.Lock per conversation id, dropped when unused."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._waiters[conversation_id] = self._waiters.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[conversation_id] -= 1
            if self._waiters[conversation_id] == 0:
                del self._waiters[conversation_id]
                del self._locks[conversation_id]

    def __len__(self) -> int:
        return len(self._locks)


class ResponseOrchestrator:
    """
    Orchestrates the AI reply pipeline.

    Pipeline:
    1. Load the conversation (skip automatic turns when AI is disabled)
    2. Build context (stop when there is no guest message)
    3. Format prompts
    4. Call the language model
    5. Parse the structured reply
    6. Calibrate confidence
    7. Decide the action
    8. Persist the AIResponse audit record
    9. Execute side effects
    """

    def __init__(
        self,
        store: PipelineStore,
        provider: CompletionProvider,
        context_builder: Optional[ConversationContextBuilder] = None,
        evaluator: Optional[ConfidenceEvaluator] = None,
        policy: Optional[ActionPolicy] = None,
        executor: Optional[EffectExecutor] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        locks: Optional[ConversationLocks] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Storage backend
            provider: Language-model provider
            context_builder: Context builder (built from store when omitted)
            evaluator: Confidence evaluator
            policy: Action policy
            executor: Effect executor (no mail relay when omitted)
            model: Model override passed to the provider
            max_tokens: Max tokens override
            temperature: Temperature override
            locks: Shared per-conversation locks
        """
        self.store = store
        self.provider = provider
        self.policy = policy or ActionPolicy()
        self.context_builder = context_builder or ConversationContextBuilder(
            store, default_threshold=self.policy.config.auto_send_threshold
        )
        self.evaluator = evaluator or ConfidenceEvaluator()
        self.executor = executor or EffectExecutor(store)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.locks = locks or ConversationLocks()

    async def generate_response(self, conversation_id: str, trigger: str = "manual") -> Dict[str, Any]:
        """
        Generate, decide and act on a reply for a conversation.

        Args:
            conversation_id: Conversation to answer
            trigger: "manual" (explicit request) or "automatic" (ingestion)

        Returns:
            Success payload with response/usage/effects, or
            {"success": False, "error": ..., "details": ...}
        """
        async with self.locks.hold(conversation_id):
            return await self._run(conversation_id, trigger)

    async def _run(self, conversation_id: str, trigger: str) -> Dict[str, Any]:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            return _error("not_found", f"Conversation {conversation_id} not found")

        if trigger == "automatic" and conversation.ai_disabled:
            logger.info(f"AI disabled for conversation {conversation_id}; automatic turn skipped")
            return _error("ai_disabled", "Automatic replies are disabled for this conversation")

        context = await self.context_builder.build(conversation_id, conversation)
        if context is None:
            logger.info(f"No context for conversation {conversation_id}; generation skipped")
            return _error("no_context", "No guest message to respond to")

        system_prompt, user_prompt = PromptTemplates.build(context)

        try:
            completion = await self.provider.complete(
                system_prompt,
                user_prompt,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except GenerationError as e:
            logger.error(f"Generation failed for conversation {conversation_id}: {e.details}")
            record_failure("generation")
            return _error(e.code, e.details)

        record_llm_latency(completion.latency_ms / 1000)
        logger.info(f"Completion for {conversation_id} in {completion.latency_ms}ms ({completion.model})")

        try:
            generated = ResponseParser.parse(completion.content)
        except ResponseParseError as e:
            logger.error(f"Parse failed for conversation {conversation_id}: {e.message}")
            record_failure("parse")
            return _error(e.code, e.details)

        confidence = self.evaluator.evaluate(generated, ConfidenceSignals.from_context(context))
        threshold = context.org_settings.auto_send_threshold
        action = self.policy.decide(confidence.score, threshold)
        record_action(action.value, confidence.score)
        logger.info(
            f"Conversation {conversation_id}: confidence={confidence.score:.3f} "
            f"threshold={threshold} action={action.value}"
        )

        record: Optional[AIResponseRecord] = None
        try:
            record = await self._persist(conversation_id, generated, confidence.score, action.value, completion)
        except PersistenceError as e:
            logger.error(f"AIResponse not persisted for {conversation_id}; side effects skipped: {e.details}")
            record_failure("persistence")

        effects = None
        if record is not None:
            effects = await self.executor.execute(record, conversation, context.org_settings.signature)

        return {
            "success": True,
            "response": {
                "id": record.id if record else None,
                "content": generated.response,
                "confidence": confidence.score,
                "confidence_band": self.policy.band(confidence.score, threshold).value,
                "reasoning": generated.reasoning,
                "intent": generated.detected_intent,
                "action": action.value,
                "factors": confidence.factors,
            },
            "usage": dict(completion.usage),
            "response_time_ms": completion.latency_ms,
            "persisted": record is not None,
            "effects": effects.to_dict() if effects else None,
        }

    async def _persist(self, conversation_id, generated, score, action, completion) -> AIResponseRecord:
        try:
            return await self.store.create_ai_response(
                conversation_id,
                generated_content=generated.response,
                confidence_score=score,
                action_taken=action,
                reasoning=generated.reasoning,
                detected_intent=generated.detected_intent,
                model_used=completion.model,
                prompt_tokens=completion.prompt_tokens,
                completion_tokens=completion.completion_tokens,
                response_time_ms=completion.latency_ms,
            )
        except Exception as e:
            raise PersistenceError("Failed to persist AI response", str(e)) from e

    async def record_feedback(self, ai_response_id: str, verdict: str) -> Optional[AIResponseRecord]:
        """Apply a human verdict; see record_feedback()."""
        return await record_feedback(self.store, ai_response_id, verdict)


async def record_feedback(store: PipelineStore, ai_response_id: str, verdict: str) -> Optional[AIResponseRecord]:
    """
    Apply a human verdict to an AI response.

    Feedback is the only change allowed after an AI response is created.

    Returns:
        Updated record, or None when the response does not exist

    Raises:
        ValueError: If the verdict is not approved, edited or rejected
    """
    if verdict not in FEEDBACK_VERDICTS:
        raise ValueError(f"Invalid feedback '{verdict}'; expected one of {FEEDBACK_VERDICTS}")
    record = await store.set_ai_response_feedback(ai_response_id, verdict)
    if record:
        logger.info(f"Feedback '{verdict}' recorded for AI response {ai_response_id}")
    return record


def _error(error: str, details: str) -> Dict[str, Any]:
    return {"success": False, "error": error, "details": details}
