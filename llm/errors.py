"""
Error types for the AI response pipeline.

No-context is not an error: the context builder returns None for it.
"""


class PipelineError(Exception):
    """Base class for failures that abort or degrade a generation turn."""

    code = "pipeline_error"

    def __init__(self, message: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.details = details or message


class GenerationError(PipelineError):
    """The language-model service failed, timed out, or returned nothing."""

    code = "generation_failed"


class ResponseParseError(PipelineError):
    """The model output is not a valid structured response record."""

    code = "parse_failed"


class PersistenceError(PipelineError):
    """The AIResponse audit record could not be written."""

    code = "persistence_failed"
