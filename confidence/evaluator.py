"""
Confidence Evaluator for generated guest replies.

Blends the model's self-reported confidence with four heuristic factors:

- Knowledge-base match: approved answers for the detected intent
- Intent clarity: whether the intent maps to a known category
- Context completeness: property info and conversation depth
- Response quality: length bounds and hedging language

Final score = mean(model confidence, weighted blend), clamped to [0, 1].
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from llm.conversation_store import KnowledgeBaseEntry
from llm.response_parser import GeneratedResponse
from .config import ConfidenceConfig
from .intent_classifier import IntentClassifier

logger = logging.getLogger(__name__)


@dataclass
class ConfidenceSignals:
    """Auxiliary context signals used alongside the parsed response."""
    knowledge_base: List[KnowledgeBaseEntry] = field(default_factory=list)
    has_property_info: bool = False
    conversation_length: int = 0

    @classmethod
    def from_context(cls, context: Any) -> "ConfidenceSignals":
        return cls(
            knowledge_base=list(context.knowledge_base),
            has_property_info=context.has_property_info,
            conversation_length=context.conversation_length,
        )


@dataclass
class ConfidenceResult:
    """Calibrated confidence with its breakdown."""
    score: float
    model_confidence: float
    weighted_score: float
    factors: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "model_confidence": self.model_confidence,
            "weighted_score": self.weighted_score,
            "factors": dict(self.factors),
        }


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ConfidenceEvaluator:
    """
    Computes a calibrated [0, 1] confidence score.

    Stateless apart from its configuration; one instance can be shared
    across concurrent turns.
    """

    def __init__(self, config: Optional[ConfidenceConfig] = None):
        self.config = config or ConfidenceConfig()
        self.intent_classifier = IntentClassifier(self.config)

    def knowledge_base_match(self, knowledge_base: Sequence[KnowledgeBaseEntry], detected_intent: str) -> float:
        cfg = self.config
        if not knowledge_base:
            return cfg.kb_neutral

        intent_lower = (detected_intent or "").lower()
        matches = [e for e in knowledge_base if intent_lower in e.question_pattern.lower()]
        if not matches:
            return cfg.kb_neutral

        avg_success = sum(e.success_rate or 0.0 for e in matches) / len(matches)
        return min(1.0, cfg.kb_base + avg_success * cfg.kb_success_weight)

    def intent_clarity(self, detected_intent: str) -> float:
        return self.intent_classifier.clarity(detected_intent)

    def context_completeness(self, has_property_info: bool, conversation_length: int) -> float:
        cfg = self.config
        score = cfg.context_base
        if has_property_info:
            score += cfg.property_bonus
        if conversation_length > 0:
            score += cfg.history_bonus
        if conversation_length > cfg.long_history_length:
            score += cfg.long_history_bonus
        return min(1.0, score)

    def response_quality(self, response: str) -> float:
        cfg = self.config
        if len(response) < cfg.min_response_length:
            return cfg.too_short_score
        if len(response) > cfg.max_response_length:
            return cfg.too_long_score

        lower = response.lower()
        if any(phrase in lower for phrase in cfg.hedging_phrases):
            return cfg.hedging_score
        return cfg.good_quality_score

    def evaluate(self, generated: GeneratedResponse, signals: ConfidenceSignals) -> ConfidenceResult:
        """
        Calibrate the model's confidence.

        Args:
            generated: Parsed model output
            signals: Knowledge base, property presence and history length

        Returns:
            ConfidenceResult with the final score and per-factor values
        """
        weights = self.config.weights
        factors = {
            "knowledge_base": self.knowledge_base_match(signals.knowledge_base, generated.detected_intent),
            "intent_clarity": self.intent_clarity(generated.detected_intent),
            "context_completeness": self.context_completeness(
                signals.has_property_info, signals.conversation_length
            ),
            "response_quality": self.response_quality(generated.response),
        }

        weighted = (
            factors["knowledge_base"] * weights.knowledge_base
            + factors["intent_clarity"] * weights.intent_clarity
            + factors["context_completeness"] * weights.context_completeness
            + factors["response_quality"] * weights.response_quality
        )

        score = clamp((generated.confidence + weighted) / 2)

        logger.debug(
            f"Confidence: model={generated.confidence:.2f} weighted={weighted:.3f} "
            f"final={score:.3f} factors={factors}"
        )

        return ConfidenceResult(
            score=score,
            model_confidence=generated.confidence,
            weighted_score=weighted,
            factors=factors,
        )
