"""
Human escalation for low-confidence AI replies.

Fans out one notification per organization owner/admin when a generated
reply is escalated. Each member is handled independently.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from llm.conversation_store import AIResponseRecord, ConversationRecord, PipelineStore

logger = logging.getLogger(__name__)


@dataclass
class EscalationOutcome:
    """Per-member result of an escalation fan-out."""
    notified: List[str] = field(default_factory=list)
    already_notified: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    lookup_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "notified": len(self.notified),
            "already_notified": len(self.already_notified),
            "failed": len(self.failed),
        }


class EscalationManager:
    """
    Creates escalation notifications.

    Trigger: the action policy chose "escalated".
    Recipients: members with an escalation role in the conversation's org.
    Re-running for the same AI response skips members already notified.
    """

    ESCALATION_ROLES = ("owner", "admin")
    NOTIFICATION_TYPE = "escalation"
    NOTIFICATION_TITLE = "AI response needs verification"
    NOTIFICATION_CHANNEL = "both"

    def __init__(self, store: PipelineStore, roles: Sequence[str] = ESCALATION_ROLES):
        self.store = store
        self.roles = tuple(roles)

    @staticmethod
    def confidence_percent(confidence: float) -> int:
        return int(confidence * 100 + 0.5)

    @staticmethod
    def conversation_link(conversation_id: str) -> str:
        return f"/inbox/{conversation_id}"

    async def escalate(
        self,
        conversation: ConversationRecord,
        ai_response: AIResponseRecord,
    ) -> EscalationOutcome:
        """
        Notify every owner/admin of the conversation's organization.

        Args:
            conversation: Conversation the reply belongs to
            ai_response: Persisted escalated AI response

        Returns:
            EscalationOutcome listing notified, skipped and failed members
        """
        outcome = EscalationOutcome()
        try:
            member_ids = await self.store.list_member_ids(conversation.organization_id, self.roles)
        except Exception as e:
            logger.error(f"Member lookup failed for conversation {conversation.id}: {e}")
            outcome.lookup_error = str(e)
            return outcome
        if not member_ids:
            logger.warning(f"No owner/admin to escalate conversation {conversation.id} to")
            return outcome

        content = f"Confidence: {self.confidence_percent(ai_response.confidence_score)}%"
        link = self.conversation_link(conversation.id)

        for user_id in member_ids:
            try:
                if await self.store.find_notification(user_id, ai_response.id):
                    outcome.already_notified.append(user_id)
                    continue
                await self.store.create_notification(
                    user_id,
                    organization_id=conversation.organization_id,
                    ai_response_id=ai_response.id,
                    type=self.NOTIFICATION_TYPE,
                    title=self.NOTIFICATION_TITLE,
                    content=content,
                    link=link,
                    channel=self.NOTIFICATION_CHANNEL,
                )
                outcome.notified.append(user_id)
            except Exception as e:
                logger.error(f"Escalation notification failed for user {user_id}: {e}")
                outcome.failed.append(user_id)

        logger.info(
            f"Escalated conversation {conversation.id}: {len(outcome.notified)} notified, "
            f"{len(outcome.failed)} failed"
        )
        return outcome
