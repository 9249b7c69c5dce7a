"""Tests for the HTTP API."""

import asyncio

import pytest

from .conftest import ScriptedProvider, reply, seed_conversation


def test_root(client):
    response = client().get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "operational"


def test_health(client):
    data = client().get("/health").json()
    assert data["status"] == "healthy"
    assert data["services"]["store"] == "InMemoryStore"
    assert data["services"]["orchestrator"] is True


def test_metrics(client):
    response = client().get("/metrics")
    assert response.status_code == 200
    assert "concierge_http_requests_total" in response.text


# ── Generation ────────────────────────────────────────

class TestGenerate:
    def test_auto_sent(self, client, relay, check_in_conversation):
        response = client().post("/api/v1/ai/generate", json={"conversation_id": check_in_conversation})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["response"]["action"] == "auto_sent"
        assert data["effects"]["delivery_status"] == "sent"
        assert len(relay.sent) == 1

    def test_unknown_conversation(self, client):
        response = client().post("/api/v1/ai/generate", json={"conversation_id": "missing"})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_no_guest_message(self, client, store):
        cid = seed_conversation(store, [("host", "Welcome!")])
        response = client().post("/api/v1/ai/generate", json={"conversation_id": cid})
        assert response.status_code == 409
        assert response.json()["error"] == "no_context"

    def test_parse_failure(self, client, check_in_conversation):
        app = client(ScriptedProvider(content="not json"))
        response = app.post("/api/v1/ai/generate", json={"conversation_id": check_in_conversation})
        assert response.status_code == 502
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "parse_failed"
        assert data["details"]

    def test_empty_conversation_id_rejected(self, client):
        assert client().post("/api/v1/ai/generate", json={"conversation_id": ""}).status_code == 422


# ── Responses and feedback ────────────────────────────

@pytest.fixture
def suggested(client, check_in_conversation):
    app = client(ScriptedProvider(reply("Check-in is at 3pm via the lockbox.", 0.5, "check_in")))
    data = app.post("/api/v1/ai/generate", json={"conversation_id": check_in_conversation}).json()
    return app, check_in_conversation, data["response"]["id"]


class TestResponses:
    def test_list_responses(self, suggested):
        app, cid, response_id = suggested
        data = app.get("/api/v1/ai/responses", params={"conversation_id": cid}).json()
        assert [r["id"] for r in data] == [response_id]
        assert data[0]["action_taken"] == "suggested"

    def test_latest_suggestion(self, suggested):
        app, cid, response_id = suggested
        data = app.get("/api/v1/ai/responses/latest-suggestion", params={"conversation_id": cid}).json()
        assert data["suggestion"]["id"] == response_id

    def test_feedback(self, suggested):
        app, cid, response_id = suggested
        response = app.post(f"/api/v1/ai/responses/{response_id}/feedback", json={"feedback": "approved"})
        assert response.status_code == 200
        assert response.json()["user_feedback"] == "approved"

        data = app.get("/api/v1/ai/responses/latest-suggestion", params={"conversation_id": cid}).json()
        assert data["suggestion"] is None

    def test_feedback_invalid_verdict(self, suggested):
        app, _, response_id = suggested
        response = app.post(f"/api/v1/ai/responses/{response_id}/feedback", json={"feedback": "great"})
        assert response.status_code == 422

    def test_feedback_unknown_response(self, client):
        response = client().post("/api/v1/ai/responses/missing/feedback", json={"feedback": "rejected"})
        assert response.status_code == 404

    def test_stats(self, suggested):
        app, _, _ = suggested
        data = app.get("/api/v1/ai/stats", params={"organization_id": "org-1"}).json()
        assert data["total"] == 1
        assert data["suggested"] == 1
        assert data["avg_confidence"] == pytest.approx(0.70625)

    def test_stats_invalid_range(self, client):
        response = client().get("/api/v1/ai/stats", params={
            "organization_id": "org-1",
            "start": "2026-02-01T00:00:00",
            "end": "2026-01-01T00:00:00",
        })
        assert response.status_code == 422


# ── Webhooks ──────────────────────────────────────────

class TestInboundWebhook:
    PAYLOAD = {
        "organization_id": "org-1",
        "thread_id": "thread-hook",
        "message_id": "ext-hook-1",
        "body": "Hello, is there parking near the apartment?",
        "from_address": "guest@example.com",
        "subject": "Parking",
    }

    def test_accepted_and_reply_generated(self, client, store):
        response = client().post("/api/v1/webhooks/inbound-email", json=self.PAYLOAD)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "accepted"
        assert data["created_conversation"] is True
        assert data["generation_scheduled"] is True

        # background tasks run before TestClient returns
        records = [r for r in store.all_ai_responses() if r.conversation_id == data["conversation_id"]]
        assert len(records) == 1

    def test_duplicate(self, client, store):
        app = client()
        app.post("/api/v1/webhooks/inbound-email", json=self.PAYLOAD)
        response = app.post("/api/v1/webhooks/inbound-email", json=self.PAYLOAD)
        assert response.json()["status"] == "duplicate"
        assert len(store.all_ai_responses()) == 1

    def test_aware_timestamp_then_later_turns(self, client, store):
        store.add_organization("org-1", ai_settings={"auto_send_threshold": 0.4})
        app = client()
        payload = dict(self.PAYLOAD, received_at="2026-01-01T10:00:00Z")
        cid = app.post("/api/v1/webhooks/inbound-email", json=payload).json()["conversation_id"]
        assert [m for m in store.all_messages() if m.source == "ai"]

        for _ in range(2):
            response = app.post("/api/v1/ai/generate", json={"conversation_id": cid})
            assert response.status_code == 200
            assert response.json()["success"] is True

    def test_missing_body(self, client):
        payload = dict(self.PAYLOAD, body="")
        assert client().post("/api/v1/webhooks/inbound-email", json=payload).status_code == 422


# ── Conversations and notifications ───────────────────

class TestConversations:
    def test_mark_read(self, client, store, check_in_conversation):
        response = client().post(f"/api/v1/conversations/{check_in_conversation}/read")
        assert response.status_code == 200
        assert response.json()["unread_count"] == 0

    def test_update_status(self, client, check_in_conversation):
        app = client()
        url = f"/api/v1/conversations/{check_in_conversation}/status"
        assert app.patch(url, json={"status": "archived"}).json()["status"] == "archived"
        assert app.patch(url, json={"status": "closed"}).status_code == 422

    def test_toggle_ai(self, client, store, check_in_conversation):
        response = client().patch(f"/api/v1/conversations/{check_in_conversation}/ai", json={"ai_disabled": True})
        assert response.status_code == 200

        assert asyncio.run(store.get_conversation(check_in_conversation)).ai_disabled is True

    def test_unknown_conversation(self, client):
        assert client().post("/api/v1/conversations/missing/read").status_code == 404

    def test_unexpected_error_payload(self, client, store, monkeypatch, check_in_conversation):
        from fastapi.testclient import TestClient

        from api.main import app

        async def broken(conversation_id, **fields):
            raise RuntimeError("database gone")

        client()
        monkeypatch.setattr(store, "update_conversation", broken)
        response = TestClient(app, raise_server_exceptions=False).post(
            f"/api/v1/conversations/{check_in_conversation}/read"
        )
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "internal_error", "details": "database gone"}


class TestNotifications:
    def test_escalation_notifications(self, client, heater_conversation):
        app = client(ScriptedProvider(reply("I'll look into this for you.", 0.3, "issue")))
        app.post("/api/v1/ai/generate", json={"conversation_id": heater_conversation})

        notifications = app.get("/api/v1/notifications", params={"user_id": "u-owner"}).json()
        assert len(notifications) == 1
        assert notifications[0]["type"] == "escalation"

        notification_id = notifications[0]["id"]
        assert app.post(f"/api/v1/notifications/{notification_id}/read").json()["is_read"] is True
        unread = app.get("/api/v1/notifications", params={"user_id": "u-owner", "unread_only": True}).json()
        assert unread == []

    def test_member_not_notified(self, client, heater_conversation):
        app = client(ScriptedProvider(reply("I'll look into this for you.", 0.3, "issue")))
        app.post("/api/v1/ai/generate", json={"conversation_id": heater_conversation})
        assert app.get("/api/v1/notifications", params={"user_id": "u-member"}).json() == []

    def test_unknown_notification(self, client):
        assert client().post("/api/v1/notifications/missing/read").status_code == 404


# ── Authentication ────────────────────────────────────

class TestApiKey:
    @pytest.fixture
    def secured(self, client, monkeypatch):
        monkeypatch.setattr("api.middleware.auth.get_api_key", lambda: "secret")
        return client()

    def test_missing_key(self, secured):
        assert secured.get("/api/v1/notifications", params={"user_id": "u-owner"}).status_code == 401

    def test_wrong_key(self, secured):
        response = secured.get(
            "/api/v1/notifications", params={"user_id": "u-owner"}, headers={"X-API-Key": "nope"}
        )
        assert response.status_code == 403

    def test_valid_key(self, secured):
        response = secured.get(
            "/api/v1/notifications", params={"user_id": "u-owner"}, headers={"X-API-Key": "secret"}
        )
        assert response.status_code == 200

    def test_public_endpoints_open(self, secured):
        assert secured.get("/health").status_code == 200
