"""Tests for the database-backed store on SQLite."""

import asyncio
from datetime import datetime, timedelta

import pytest

from api.channels.inbound import GuestMessageIngestor, InboundEmail
from database.models import AIKnowledgeBase, Membership, Organization, Property
from database.session import close_db, get_session_factory, init_db
from llm.db_conversation_store import DbPipelineStore
from llm.effect_executor import EffectExecutor
from llm.orchestrator import ResponseOrchestrator, record_feedback

from .conftest import RecordingRelay, ScriptedProvider, reply


async def seed(session_factory):
    async with session_factory() as session:
        async with session.begin():
            session.add(Organization(
                id="org-db", name="Alba Lyon", slug="alba-lyon",
                ai_settings={"tone": "friendly", "signature": "Alba Lyon"},
            ))
            session.add_all([
                Membership(organization_id="org-db", user_id="u-owner", role="owner"),
                Membership(organization_id="org-db", user_id="u-admin", role="admin"),
                Membership(organization_id="org-db", user_id="u-member", role="member"),
            ])
            session.add(Property(
                id="prop-db", organization_id="org-db", name="Croix-Rousse Studio",
                check_in_instructions="Keys at the bakery downstairs", amenities=["wifi"],
            ))
            session.add(AIKnowledgeBase(
                organization_id="org-db", question_pattern="check_in keys",
                approved_response="Keys are at the bakery.", usage_count=4, success_rate=0.9,
            ))


@pytest.fixture
def database(tmp_path):
    """Run a coroutine against a fresh SQLite database."""
    def _run(scenario):
        async def main():
            await init_db(f"sqlite:///{tmp_path / 'alba.db'}")
            try:
                session_factory = get_session_factory()
                await seed(session_factory)
                return await scenario(DbPipelineStore(session_factory))
            finally:
                await close_db()
        return asyncio.run(main())
    return _run


def inbound(body, message_id="ext-db-1"):
    return InboundEmail(
        organization_id="org-db",
        thread_id="thread-db",
        external_message_id=message_id,
        body=body,
        from_address="guest@example.com",
        subject="Arrival",
        property_id="prop-db",
    )


def test_ingest_and_auto_send(database):
    relay = RecordingRelay()

    async def scenario(store):
        ingested = await GuestMessageIngestor(store).ingest(inbound("Where do I pick up the keys?"))
        duplicate = await GuestMessageIngestor(store).ingest(inbound("Where do I pick up the keys?"))

        orchestrator = ResponseOrchestrator(
            store,
            ScriptedProvider(reply("Your keys are waiting at the bakery downstairs.", 0.95, "check_in")),
            executor=EffectExecutor(store, mail_relay=relay),
        )
        result = await orchestrator.generate_response(ingested.conversation_id, trigger="automatic")
        messages = await store.get_messages(ingested.conversation_id)
        record = await store.get_ai_response(result["response"]["id"])
        conversation = await store.get_conversation(ingested.conversation_id)
        return ingested, duplicate, result, messages, record, conversation

    ingested, duplicate, result, messages, record, conversation = database(scenario)

    assert ingested.created_conversation is True
    assert duplicate.duplicate is True
    assert conversation.unread_count == 1
    assert result["response"]["action"] == "auto_sent"
    assert [m.source for m in messages] == ["guest", "ai"]
    assert messages[1].status == "sent"
    assert messages[1].external_message_id == "gmail-1"
    assert record.message_id == messages[1].id
    assert relay.sent[0].content.endswith("\n\nAlba Lyon")


def test_escalation_feedback_and_stats(database):
    async def scenario(store):
        ingested = await GuestMessageIngestor(store).ingest(inbound("The shower is leaking everywhere"))
        orchestrator = ResponseOrchestrator(
            store, ScriptedProvider(reply("I'll look into this for you.", 0.2, "issue"))
        )
        result = await orchestrator.generate_response(ingested.conversation_id)
        response_id = result["response"]["id"]

        owner = await store.list_notifications("u-owner")
        member = await store.list_notifications("u-member")
        suggestion = await store.get_latest_suggestion(ingested.conversation_id)
        updated = await record_feedback(store, response_id, "rejected")
        after = await store.get_latest_suggestion(ingested.conversation_id)
        now = datetime.utcnow()
        stats = await store.get_ai_response_stats("org-db", now - timedelta(days=1), now + timedelta(days=1))
        return result, owner, member, suggestion, updated, after, stats

    result, owner, member, suggestion, updated, after, stats = database(scenario)

    assert result["response"]["action"] == "escalated"
    assert len(owner) == 1
    assert owner[0].link.startswith("/inbox/")
    assert member == []
    assert suggestion.id == result["response"]["id"]
    assert updated.user_feedback == "rejected"
    assert after is None
    assert stats["total"] == 1
    assert stats["escalated"] == 1


def test_knowledge_base_scope(database):
    async def scenario(store):
        scoped = await store.get_knowledge_base("org-db", "prop-db", 10)
        other_org = await store.get_knowledge_base("org-other", None, 10)
        return scoped, other_org

    scoped, other_org = database(scenario)
    assert [e.question_pattern for e in scoped] == ["check_in keys"]
    assert other_org == []
