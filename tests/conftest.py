"""Shared fixtures for Alba conciergerie tests."""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

import pytest

# Ensure we use test settings: no database, no API key, no real model
os.environ["DATABASE_URL"] = ""
os.environ["API_KEY"] = ""
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from api.channels.base import ChannelMessage, ChannelResponse, MailRelay  # noqa: E402
from llm.conversation_store import KnowledgeBaseEntry, PropertyRecord  # noqa: E402
from llm.effect_executor import EffectExecutor  # noqa: E402
from llm.memory_store import InMemoryStore  # noqa: E402
from llm.orchestrator import ResponseOrchestrator  # noqa: E402
from llm.providers.base import CompletionResult  # noqa: E402

ORG_ID = "org-1"
PROPERTY_ID = "prop-loft"


class ScriptedProvider:
    """Completion provider that replays a fixed reply."""

    model_id = "scripted-model"

    def __init__(
        self,
        payload: Optional[Dict[str, Any]] = None,
        content: Optional[str] = None,
        error: Optional[Exception] = None,
    ):
        self.payload = payload
        self.content = content
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, system, prompt, model=None, max_tokens=None, temperature=None):
        self.calls.append({"system": system, "prompt": prompt})
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.error:
                raise self.error
            content = self.content if self.content is not None else json.dumps(self.payload)
            return CompletionResult(
                content=content,
                model=self.model_id,
                usage={"prompt_tokens": 120, "completion_tokens": 30, "total_tokens": 150},
                latency_ms=42,
            )
        finally:
            self.in_flight -= 1


class RecordingRelay(MailRelay):
    """Mail relay that records sends instead of delivering them."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[ChannelMessage] = []

    async def send_message(self, message: ChannelMessage) -> ChannelResponse:
        self.sent.append(message)
        if not self.succeed:
            return ChannelResponse(success=False, error="relay unavailable")
        return ChannelResponse(success=True, message_id=f"gmail-{len(self.sent)}", thread_id=message.thread_id)

    async def health_check(self) -> bool:
        return self.succeed


def reply(response: str, confidence: float, intent: str, reasoning: str = "test") -> Dict[str, Any]:
    return {
        "response": response,
        "confidence": confidence,
        "reasoning": reasoning,
        "detected_intent": intent,
    }


def seed_organization(store: InMemoryStore, ai_settings: Optional[Dict[str, Any]] = None):
    store.add_organization(ORG_ID, name="Alba Paris", ai_settings=ai_settings)
    store.add_member(ORG_ID, "u-owner", "owner")
    store.add_member(ORG_ID, "u-admin", "admin")
    store.add_member(ORG_ID, "u-member", "member")


def seed_property(store: InMemoryStore):
    store.add_property(PropertyRecord(
        id=PROPERTY_ID,
        organization_id=ORG_ID,
        name="Marais Loft",
        description="Two-bedroom loft near Place des Vosges",
        check_in_instructions="3pm, self check-in with lockbox",
        house_rules="No parties",
        amenities=["wifi", "washer"],
    ))


def seed_conversation(
    store: InMemoryStore,
    messages: List[tuple],
    property_id: Optional[str] = None,
    language: str = "en",
    **fields,
) -> str:
    """Create a conversation with (source, content) messages; returns its id."""
    async def _seed():
        conv = await store.create_conversation(
            ORG_ID,
            property_id=property_id,
            guest_name="Jane Guest",
            guest_email="guest@example.com",
            thread_id=fields.pop("thread_id", "thread-1"),
            subject="Stay at Marais Loft",
            language=language,
            **fields,
        )
        for source, content in messages:
            await store.create_message(
                conversation_id=conv.id,
                source=source,
                content=content,
                status="delivered" if source == "guest" else "sent",
            )
        return conv.id

    return asyncio.run(_seed())


@pytest.fixture
def store():
    store = InMemoryStore()
    seed_organization(store)
    return store


@pytest.fixture
def relay():
    return RecordingRelay()


@pytest.fixture
def make_orchestrator(store, relay):
    """Build an orchestrator over the shared store and relay."""
    def _make(provider, **kwargs):
        return ResponseOrchestrator(
            store=store,
            provider=provider,
            executor=kwargs.pop("executor", None) or EffectExecutor(store, mail_relay=relay),
            **kwargs,
        )
    return _make


@pytest.fixture
def check_in_conversation(store):
    """Guest asks about check-in on a property with instructions and a matching approved answer."""
    seed_property(store)
    store.add_knowledge_entry(ORG_ID, KnowledgeBaseEntry(
        id="kb-1",
        question_pattern="check_in: what time can I arrive",
        approved_response="Check-in is from 3pm with the lockbox.",
        usage_count=12,
        success_rate=0.95,
    ))
    return seed_conversation(store, [("guest", "What time is check-in?")], property_id=PROPERTY_ID)


@pytest.fixture
def heater_conversation(store):
    """Guest reports a broken heater; no property, empty knowledge base."""
    return seed_conversation(store, [("guest", "The heater is broken and it's freezing")])


@pytest.fixture
def client(store, relay):
    """FastAPI test client wired to in-memory services."""
    from fastapi.testclient import TestClient

    from api.main import app
    from api.services import get_services

    def _client(provider=None):
        services = get_services()
        services.reset()
        services.initialize(
            store=store,
            provider=provider or ScriptedProvider(reply("Check-in is at 3pm via the lockbox.", 0.95, "check_in")),
            mail_relay=relay,
        )
        return TestClient(app)

    yield _client
    get_services().reset()
