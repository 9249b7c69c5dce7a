"""
Tunable constants for confidence calibration and action selection.

Every weight, threshold and keyword table used by the evaluator and the
action policy lives here so the policy can be changed without touching
control flow.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


DEFAULT_INTENT_KEYWORDS: Dict[str, List[str]] = {
    "check_in": ["arrivée", "check-in", "clé", "clef", "heure", "entrée", "arrival", "key", "time"],
    "check_out": ["départ", "check-out", "sortie", "checkout", "departure", "leave"],
    "amenities": [
        "wifi", "parking", "équipement", "piscine", "climatisation", "chauffage",
        "amenities", "facilities",
    ],
    "location": [
        "adresse", "comment venir", "transport", "métro", "bus", "address",
        "directions", "getting there",
    ],
    "booking": ["réservation", "dates", "modification", "annulation", "booking", "cancel", "change"],
    "issue": ["problème", "ne fonctionne pas", "cassé", "urgent", "problem", "broken", "not working"],
    "other": [],
}

DEFAULT_HEDGING_PHRASES: Tuple[str, ...] = (
    "je ne sais pas",
    "i don't know",
    "vérifier",
    "check with",
    "peut-être",
    "maybe",
    "je pense",
    "i think",
)


@dataclass(frozen=True)
class FactorWeights:
    knowledge_base: float = 0.30
    intent_clarity: float = 0.25
    context_completeness: float = 0.25
    response_quality: float = 0.20


@dataclass(frozen=True)
class ConfidenceConfig:
    """Constants for the four heuristic factors and the final blend."""

    weights: FactorWeights = field(default_factory=FactorWeights)

    # Knowledge-base match
    kb_neutral: float = 0.5
    kb_base: float = 0.5
    kb_success_weight: float = 0.5

    # Intent clarity
    intent_keywords: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_INTENT_KEYWORDS.items()}
    )
    fallback_intent: str = "other"
    named_intent_score: float = 0.9
    fallback_intent_score: float = 0.6
    unknown_intent_score: float = 0.5

    # Context completeness
    context_base: float = 0.5
    property_bonus: float = 0.3
    history_bonus: float = 0.1
    long_history_bonus: float = 0.1
    long_history_length: int = 3

    # Response quality
    min_response_length: int = 20
    max_response_length: int = 1000
    too_short_score: float = 0.3
    too_long_score: float = 0.6
    hedging_score: float = 0.6
    good_quality_score: float = 0.85
    hedging_phrases: Tuple[str, ...] = DEFAULT_HEDGING_PHRASES


@dataclass(frozen=True)
class ActionPolicyConfig:
    """
    Action thresholds.

    The same numbers drive the presentation band so the UI and the
    decision cannot disagree.
    """

    auto_send_threshold: float = 0.85
    suggest_threshold: float = 0.5
