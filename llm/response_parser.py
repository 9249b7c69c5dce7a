"""
Response Parser for model output.

The model is asked for a JSON object with exactly four fields. Anything
else (prose, missing fields, wrong types) fails the turn.
"""

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ResponseParseError

logger = logging.getLogger(__name__)


class GeneratedResponse(BaseModel):
    """Structured reply produced by the model, before calibration."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)

    response: str = Field(min_length=1)
    confidence: float
    reasoning: str
    detected_intent: str


class ResponseParser:
    """Parses raw completion content into a GeneratedResponse."""

    @staticmethod
    def parse(content: str) -> GeneratedResponse:
        """
        Parse model output.

        Args:
            content: Raw completion text

        Returns:
            GeneratedResponse

        Raises:
            ResponseParseError: If the content is not a valid response record
        """
        if not content or not content.strip():
            raise ResponseParseError("Model output is empty")

        try:
            return GeneratedResponse.model_validate_json(content)
        except ValidationError as e:
            snippet = content[:200].replace("\n", " ")
            logger.error(f"Failed to parse model output ({e.error_count()} errors): {snippet}")
            raise ResponseParseError("Model output is not a valid response record", str(e)) from e
