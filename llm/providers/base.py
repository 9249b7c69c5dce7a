"""
Completion provider contract.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, runtime_checkable


@dataclass
class CompletionResult:
    """Raw model output plus usage and timing."""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=lambda: {
        "prompt_tokens": 0,
        "completion_tokens": 0,
        "total_tokens": 0,
    })
    latency_ms: int = 0

    @property
    def prompt_tokens(self) -> int:
        return self.usage.get("prompt_tokens", 0)

    @property
    def completion_tokens(self) -> int:
        return self.usage.get("completion_tokens", 0)


@runtime_checkable
class CompletionProvider(Protocol):
    """Anything that can turn a (system, user) prompt pair into JSON text."""

    model_id: str

    async def complete(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionResult:
        ...
