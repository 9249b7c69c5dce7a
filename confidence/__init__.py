"""
Confidence Module for the Alba conciergerie assistant.

This module decides what happens to a generated reply:
- Intent clarity over a fixed category table
- Confidence calibration from four heuristic factors
- Action selection (auto_sent, suggested, escalated)
"""

from .config import ActionPolicyConfig, ConfidenceConfig, FactorWeights
from .intent_classifier import IntentCategory, IntentClassifier
from .evaluator import ConfidenceEvaluator, ConfidenceResult, ConfidenceSignals
from .action_policy import ActionPolicy, AIAction, ConfidenceBand

__all__ = [
    "ActionPolicy",
    "ActionPolicyConfig",
    "AIAction",
    "ConfidenceBand",
    "ConfidenceConfig",
    "ConfidenceEvaluator",
    "ConfidenceResult",
    "ConfidenceSignals",
    "FactorWeights",
    "IntentCategory",
    "IntentClassifier",
]
