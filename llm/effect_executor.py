"""
Effect Executor for decided AI replies.

Runs after the AIResponse audit record is persisted:

- auto_sent: create the AI message (pending), link it to the AIResponse,
  deliver through the mail relay, then mark it sent or failed
- escalated: notify every owner/admin of the organization
- suggested: nothing; a human reviews it later

Each step is recorded in the message status so a partial run can be
detected and repaired. Running again for the same AIResponse reuses the
existing message and skips members already notified.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from api.channels.base import ChannelMessage, MailRelay
from api.handoff.manager import EscalationManager
from api.middleware.metrics import record_effect_failure
from .conversation_store import AIResponseRecord, ConversationRecord, MessageRecord, PipelineStore

logger = logging.getLogger(__name__)

DELIVERED_STATUSES = ("sent", "delivered")


def compose_body(content: str, signature: str = "") -> str:
    """Outbound body with the organization signature appended."""
    body = content.strip()
    if signature:
        body += f"\n\n{signature}"
    return body


@dataclass
class EffectResult:
    """Summary of side effects for one AIResponse."""
    action: str
    message_id: Optional[str] = None
    delivery_status: Optional[str] = None
    notifications: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "message_id": self.message_id,
            "delivery_status": self.delivery_status,
            "notifications": dict(self.notifications),
            "errors": list(self.errors),
        }


class EffectExecutor:
    """Performs the side effects of a decided action."""

    def __init__(
        self,
        store: PipelineStore,
        mail_relay: Optional[MailRelay] = None,
        escalation_manager: Optional[EscalationManager] = None,
    ):
        self.store = store
        self.mail_relay = mail_relay
        self.escalation_manager = escalation_manager or EscalationManager(store)

    async def execute(
        self,
        ai_response: AIResponseRecord,
        conversation: ConversationRecord,
        signature: str = "",
    ) -> EffectResult:
        """
        Apply the side effects for a persisted AI response.

        Args:
            ai_response: Persisted AIResponse record
            conversation: Conversation the reply belongs to
            signature: Organization signature for outbound mail

        Returns:
            EffectResult; failures are listed in errors, never raised
        """
        action = ai_response.action_taken
        result = EffectResult(action=action)

        if action == "auto_sent":
            await self._send_reply(ai_response, conversation, signature, result)
        elif action == "escalated":
            try:
                outcome = await self.escalation_manager.escalate(conversation, ai_response)
            except Exception as e:
                logger.error(f"Escalation failed for AI response {ai_response.id}: {e}")
                record_effect_failure("notification")
                result.errors.append(f"escalation failed: {e}")
                return result
            result.notifications = outcome.to_dict()
            if outcome.lookup_error:
                record_effect_failure("notification")
                result.errors.append(f"member lookup failed: {outcome.lookup_error}")
            if outcome.failed:
                record_effect_failure("notification", len(outcome.failed))
                result.errors.append(f"notification failed for {len(outcome.failed)} member(s)")
        elif action != "suggested":
            logger.warning(f"Unknown action '{action}' for AI response {ai_response.id}")

        return result

    async def _existing_message(self, ai_response: AIResponseRecord) -> Optional[MessageRecord]:
        if ai_response.message_id:
            msg = await self.store.get_message(ai_response.message_id)
            if msg:
                return msg
        return await self.store.find_message_for_ai_response(ai_response.id)

    async def _send_reply(
        self,
        ai_response: AIResponseRecord,
        conversation: ConversationRecord,
        signature: str,
        result: EffectResult,
    ) -> None:
        try:
            msg = await self._existing_message(ai_response)
        except Exception as e:
            logger.error(f"Lookup of AI message for {ai_response.id} failed: {e}")
            record_effect_failure("message_create")
            result.errors.append(f"message lookup failed: {e}")
            return

        if msg and msg.status in DELIVERED_STATUSES:
            logger.info(f"AI response {ai_response.id} already delivered as message {msg.id}")
            result.message_id = msg.id
            result.delivery_status = msg.status
            return

        if msg is None:
            try:
                msg = await self.store.create_message(
                    conversation_id=conversation.id,
                    source="ai",
                    content=ai_response.generated_content,
                    status="pending",
                    metadata={
                        "ai_response_id": ai_response.id,
                        "confidence": ai_response.confidence_score,
                    },
                )
            except Exception as e:
                logger.error(f"Failed to create AI message for {ai_response.id}: {e}")
                record_effect_failure("message_create")
                result.errors.append(f"message create failed: {e}")
                return

        result.message_id = msg.id
        result.delivery_status = msg.status

        if ai_response.message_id != msg.id:
            try:
                await self.store.link_ai_response_message(ai_response.id, msg.id)
            except Exception as e:
                logger.error(f"Failed to link message {msg.id} to AI response {ai_response.id}: {e}")
                record_effect_failure("message_link")
                result.errors.append(f"message link failed: {e}")

        if self.mail_relay is None:
            logger.warning(f"No mail relay configured; message {msg.id} left pending")
            return

        status, external_id = await self._deliver(msg, ai_response, conversation, signature, result)
        try:
            await self.store.update_message_status(msg.id, status, external_id)
            result.delivery_status = status
        except Exception as e:
            logger.error(f"Failed to mark message {msg.id} as {status}: {e}")
            record_effect_failure("status_update")
            result.errors.append(f"status update failed: {e}")

    async def _deliver(
        self,
        msg: MessageRecord,
        ai_response: AIResponseRecord,
        conversation: ConversationRecord,
        signature: str,
        result: EffectResult,
    ) -> Tuple[str, Optional[str]]:
        if not conversation.guest_email:
            logger.error(f"Conversation {conversation.id} has no guest address; message {msg.id} not sent")
            record_effect_failure("delivery")
            result.errors.append("delivery failed: no recipient address")
            return "failed", None

        response = await self.mail_relay.send_message(ChannelMessage(
            to=conversation.guest_email,
            subject=conversation.subject or "",
            content=compose_body(ai_response.generated_content, signature),
            thread_id=conversation.thread_id,
        ))
        if not response.success:
            logger.error(f"Delivery of message {msg.id} failed: {response.error}")
            record_effect_failure("delivery")
            result.errors.append(f"delivery failed: {response.error}")
            return "failed", None

        logger.info(f"AI message {msg.id} delivered ({response.message_id})")
        return "sent", response.message_id
