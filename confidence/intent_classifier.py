"""
Intent clarity for model-detected intents.

The model labels each guest message with a free-text intent. This module
maps that label onto a fixed category table and scores how clear it is.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from .config import ConfidenceConfig

logger = logging.getLogger(__name__)


class IntentCategory(Enum):
    """Guest question categories."""
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    AMENITIES = "amenities"
    LOCATION = "location"
    BOOKING = "booking"
    ISSUE = "issue"
    OTHER = "other"


class IntentClassifier:
    """
    Matches a detected intent string against the category keyword table.

    Categories are checked in table order; the first category whose name
    equals the intent, or one of whose keywords appears in it, wins.
    """

    def __init__(self, config: Optional[ConfidenceConfig] = None):
        self.config = config or ConfidenceConfig()
        self.keywords: Dict[str, List[str]] = self.config.intent_keywords

    def match(self, detected_intent: str) -> Optional[str]:
        """Return the matching category name, or None."""
        intent_lower = (detected_intent or "").lower()
        for category, keywords in self.keywords.items():
            if category == detected_intent:
                return category
            if any(keyword in intent_lower for keyword in keywords):
                return category
        return None

    def clarity(self, detected_intent: str) -> float:
        """
        Score intent clarity.

        Args:
            detected_intent: Intent label returned by the model

        Returns:
            Named category score, the fallback-category score for "other",
            or the unknown score when nothing matches
        """
        category = self.match(detected_intent)
        if category is None:
            return self.config.unknown_intent_score
        if category == self.config.fallback_intent:
            return self.config.fallback_intent_score
        return self.config.named_intent_score
