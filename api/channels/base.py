"""
Abstract mail relay for guest replies.

Base class for outbound channels that deliver AI or host replies back to
the guest's thread.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class ChannelMessage:
    """Reply to deliver to a guest."""
    to: str  # Guest or platform relay email address
    subject: str
    content: str
    thread_id: Optional[str] = None
    in_reply_to: Optional[str] = None

    @property
    def reply_subject(self) -> str:
        subject = self.subject or ""
        return subject if subject.startswith("Re:") else f"Re: {subject}"


@dataclass
class ChannelResponse:
    """Response from a relay send operation."""
    success: bool
    message_id: Optional[str] = None
    thread_id: Optional[str] = None
    error: Optional[str] = None


class MailRelay(ABC):
    """Abstract base class for outbound mail relays."""

    @abstractmethod
    async def send_message(self, message: ChannelMessage) -> ChannelResponse:
        """Send a reply. Failures are returned, not raised."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the relay is operational."""
        ...
