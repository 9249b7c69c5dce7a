"""
Service initialization and dependency injection for the Alba API.

Creates and manages all service instances used by the API.
"""

import logging
from typing import Optional

from api.channels.base import MailRelay
from api.channels.email import EmailRouter, GmailRelay, SESRelay, static_token
from api.channels.inbound import GuestMessageIngestor
from config.settings import Settings, get_settings
from confidence.action_policy import ActionPolicy
from confidence.config import ActionPolicyConfig
from confidence.evaluator import ConfidenceEvaluator
from database.session import get_session_factory
from llm.conversation_store import PipelineStore
from llm.db_conversation_store import DbPipelineStore
from llm.effect_executor import EffectExecutor
from llm.memory_store import InMemoryStore
from llm.orchestrator import ResponseOrchestrator
from llm.providers import BedrockProvider, CompletionProvider, OpenAIProvider
from retrieval.context_builder import ConversationContextBuilder

logger = logging.getLogger(__name__)


class Services:
    """Container for all application services."""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.store: Optional[PipelineStore] = None
        self.provider: Optional[CompletionProvider] = None
        self.mail_relay: Optional[MailRelay] = None
        self.ingestor: Optional[GuestMessageIngestor] = None
        self.orchestrator: Optional[ResponseOrchestrator] = None
        self._initialized = False

    def initialize(
        self,
        store: Optional[PipelineStore] = None,
        provider: Optional[CompletionProvider] = None,
        mail_relay: Optional[MailRelay] = None,
    ):
        """
        Initialize all services.

        Args:
            store: Storage backend (database or in-memory when omitted)
            provider: Completion provider (from LLM_PROVIDER when omitted)
            mail_relay: Outbound relay (from GMAIL_* / SES_* when omitted)
        """
        if self._initialized:
            return

        self.settings = get_settings()
        logger.info(f"Initializing services with provider: {self.settings.llm_provider}")

        self.store = store or self._init_store()
        self.provider = provider or self._init_provider()
        self.mail_relay = mail_relay or self._init_mail_relay()
        self.ingestor = GuestMessageIngestor(self.store)
        self._init_orchestrator()
        self._initialized = True

        if self.orchestrator is None:
            logger.warning("API starting in degraded mode: no language model provider")
        else:
            logger.info("All services initialized successfully")

    def reset(self):
        """Drop all service instances (used between test apps)."""
        self.__init__()

    def _init_store(self) -> PipelineStore:
        session_factory = get_session_factory()
        if session_factory is not None:
            logger.info("Using database store")
            return DbPipelineStore(session_factory)
        logger.warning("DATABASE_URL not set or unavailable, using in-memory store")
        return InMemoryStore()

    def _init_provider(self) -> Optional[CompletionProvider]:
        s = self.settings
        try:
            if s.is_bedrock:
                return BedrockProvider(
                    model_id=s.bedrock_llm_model_id,
                    region=s.aws_region,
                    max_tokens=s.max_tokens,
                    temperature=s.temperature,
                    timeout_seconds=s.llm_timeout_seconds,
                )
            return OpenAIProvider(
                api_key=s.openai_api_key,
                model_id=s.openai_llm_model,
                max_tokens=s.max_tokens,
                temperature=s.temperature,
                timeout_seconds=s.llm_timeout_seconds,
            )
        except Exception as e:
            logger.error(f"LLM provider initialization failed: {e}")
            return None

    def _init_mail_relay(self) -> Optional[MailRelay]:
        s = self.settings
        primary: Optional[MailRelay] = None
        if s.gmail_access_token:
            primary = GmailRelay(
                static_token(s.gmail_access_token),
                base_url=s.gmail_api_base_url,
                timeout=s.mail_timeout_seconds,
            )
        fallback = SESRelay(region=s.aws_region, from_email=s.ses_from_email) if s.ses_from_email else None

        if primary and fallback:
            return EmailRouter(primary, fallback)
        relay = primary or fallback
        if relay is None:
            logger.warning("No mail relay configured; auto-sent replies stay pending")
        return relay

    def _init_orchestrator(self):
        if self.provider is None:
            return
        s = self.settings
        policy = ActionPolicy(ActionPolicyConfig(
            auto_send_threshold=s.default_auto_send_threshold,
            suggest_threshold=s.suggest_threshold,
        ))
        self.orchestrator = ResponseOrchestrator(
            store=self.store,
            provider=self.provider,
            context_builder=ConversationContextBuilder(
                self.store,
                knowledge_base_limit=s.knowledge_base_limit,
                default_threshold=s.default_auto_send_threshold,
            ),
            evaluator=ConfidenceEvaluator(),
            policy=policy,
            executor=EffectExecutor(self.store, mail_relay=self.mail_relay),
        )
        logger.info("Response orchestrator ready")

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.orchestrator is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "store": type(self.store).__name__ if self.store else None,
            "llm_provider": self.provider is not None,
            "mail_relay": self.mail_relay is not None,
            "orchestrator": self.orchestrator is not None,
        }


# Singleton
_services = Services()


def get_services() -> Services:
    """Get the global services instance."""
    return _services


def initialize_services(**overrides):
    """Initialize all services (called at startup)."""
    _services.initialize(**overrides)
