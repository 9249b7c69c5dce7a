"""
Action Policy for calibrated replies.

Maps a final confidence and the organization's auto-send threshold to
exactly one terminal action:

- confidence >= threshold          -> auto_sent
- suggest <= confidence < threshold -> suggested
- confidence < suggest             -> escalated
"""

import logging
from enum import Enum
from typing import Optional

from .config import ActionPolicyConfig

logger = logging.getLogger(__name__)


class AIAction(Enum):
    """Terminal actions for a generated reply."""
    AUTO_SENT = "auto_sent"
    SUGGESTED = "suggested"
    ESCALATED = "escalated"


class ConfidenceBand(Enum):
    """Presentation band for a confidence score."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionPolicy:
    """Pure decision function over (confidence, threshold)."""

    def __init__(self, config: Optional[ActionPolicyConfig] = None):
        self.config = config or ActionPolicyConfig()

    def decide(self, confidence: float, threshold: Optional[float] = None) -> AIAction:
        """
        Choose the action for a reply.

        Args:
            confidence: Final calibrated confidence
            threshold: Organization auto-send threshold (config default when None)

        Returns:
            AIAction
        """
        auto_send = self.config.auto_send_threshold if threshold is None else threshold

        if confidence >= auto_send:
            return AIAction.AUTO_SENT
        if confidence >= self.config.suggest_threshold:
            return AIAction.SUGGESTED
        return AIAction.ESCALATED

    def band(self, confidence: float, threshold: Optional[float] = None) -> ConfidenceBand:
        """Presentation band using the same thresholds as decide()."""
        action = self.decide(confidence, threshold)
        if action is AIAction.AUTO_SENT:
            return ConfidenceBand.HIGH
        if action is AIAction.SUGGESTED:
            return ConfidenceBand.MEDIUM
        return ConfidenceBand.LOW
