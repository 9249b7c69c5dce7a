"""Tests for completion providers and mail relays."""

import asyncio
import base64
import io
import json
from types import SimpleNamespace

import httpx
import pytest
from openai import OpenAIError

from api.channels.base import ChannelMessage
from api.channels.email import EmailRouter, GmailRelay, build_raw_message, static_token
from llm.errors import GenerationError
from llm.providers import BedrockProvider, OpenAIProvider

from .conftest import RecordingRelay


# ── OpenAI ────────────────────────────────────────────

class FakeCompletions:
    def __init__(self, content='{"response": "ok"}', error=None, delay=0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return SimpleNamespace(
            model="gpt-test",
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )


def openai_provider(completions, **kwargs):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIProvider(client=client, **kwargs)


class TestOpenAIProvider:
    def test_requests_json_object(self):
        completions = FakeCompletions()
        result = asyncio.run(openai_provider(completions).complete("system", "prompt"))

        assert completions.kwargs["response_format"] == {"type": "json_object"}
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert result.content == '{"response": "ok"}'
        assert result.model == "gpt-test"
        assert (result.prompt_tokens, result.completion_tokens) == (10, 5)

    def test_overrides(self):
        completions = FakeCompletions()
        provider = openai_provider(completions)
        asyncio.run(provider.complete("s", "p", model="gpt-other", max_tokens=50, temperature=0.0))
        assert completions.kwargs["model"] == "gpt-other"
        assert completions.kwargs["max_tokens"] == 50
        assert completions.kwargs["temperature"] == 0.0

    def test_service_error(self):
        provider = openai_provider(FakeCompletions(error=OpenAIError("rate limited")))
        with pytest.raises(GenerationError) as exc:
            asyncio.run(provider.complete("s", "p"))
        assert "rate limited" in exc.value.details

    def test_timeout(self):
        provider = openai_provider(FakeCompletions(delay=1.0), timeout_seconds=0.01)
        with pytest.raises(GenerationError):
            asyncio.run(provider.complete("s", "p"))

    def test_empty_content(self):
        provider = openai_provider(FakeCompletions(content=""))
        with pytest.raises(GenerationError):
            asyncio.run(provider.complete("s", "p"))


# ── Bedrock ───────────────────────────────────────────

class FakeBedrockClient:
    def __init__(self, text):
        self.text = text
        self.body = None

    def invoke_model(self, modelId, body, contentType, accept):
        self.body = json.loads(body)
        payload = {
            "content": [{"type": "text", "text": self.text}] if self.text is not None else [],
            "usage": {"input_tokens": 20, "output_tokens": 8},
        }
        return {"body": io.BytesIO(json.dumps(payload).encode())}


class TestBedrockProvider:
    def test_prefilled_json(self):
        client = FakeBedrockClient('"response": "ok", "confidence": 0.9}')
        result = asyncio.run(BedrockProvider(model_id="claude-test", client=client).complete("system", "prompt"))

        assert client.body["system"] == "system"
        assert client.body["messages"][-1]["role"] == "assistant"
        assert result.content == '{"response": "ok", "confidence": 0.9}'
        assert result.usage["total_tokens"] == 28
        assert result.model == "claude-test"

    def test_no_content(self):
        with pytest.raises(GenerationError):
            asyncio.run(BedrockProvider(client=FakeBedrockClient(None)).complete("s", "p"))

    def test_malformed_body(self):
        class TruncatedClient(FakeBedrockClient):
            def invoke_model(self, modelId, body, contentType, accept):
                return {"body": io.BytesIO(b'{"content": [')}

        with pytest.raises(GenerationError) as exc:
            asyncio.run(BedrockProvider(client=TruncatedClient("")).complete("s", "p"))
        assert exc.value.code == "generation_failed"


# ── Gmail relay ───────────────────────────────────────

def decode_raw(raw):
    return base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode("utf-8")


MESSAGE = ChannelMessage(
    to="guest@example.com",
    subject="Stay at Marais Loft",
    content="Check-in is at 3pm.",
    thread_id="thread-1",
)


class TestGmailRelay:
    def test_send(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "gm-1", "threadId": "thread-1"})

        relay = GmailRelay(static_token("tok"), transport=httpx.MockTransport(handler))
        result = asyncio.run(relay.send_message(MESSAGE))

        assert result.success is True
        assert result.message_id == "gm-1"
        assert captured["url"].endswith("/users/me/messages/send")
        assert captured["auth"] == "Bearer tok"
        assert captured["body"]["threadId"] == "thread-1"
        raw = decode_raw(captured["body"]["raw"])
        assert "To: guest@example.com" in raw
        assert "Subject: Re: Stay at Marais Loft" in raw
        assert raw.endswith("\r\n\r\nCheck-in is at 3pm.")

    def test_http_error_is_returned(self):
        relay = GmailRelay(static_token("tok"), transport=httpx.MockTransport(lambda r: httpx.Response(401)))
        result = asyncio.run(relay.send_message(MESSAGE))
        assert result.success is False
        assert result.error

    def test_raw_message_is_unpadded(self):
        assert not build_raw_message(MESSAGE).endswith("=")

    def test_reply_subject_not_doubled(self):
        message = ChannelMessage(to="g@example.com", subject="Re: Parking", content="Yes")
        assert message.reply_subject == "Re: Parking"


class TestEmailRouter:
    def test_fallback_used_on_failure(self):
        primary, fallback = RecordingRelay(succeed=False), RecordingRelay()
        result = asyncio.run(EmailRouter(primary, fallback).send_message(MESSAGE))
        assert result.success is True
        assert len(primary.sent) == 1
        assert len(fallback.sent) == 1

    def test_primary_only(self):
        primary = RecordingRelay(succeed=False)
        result = asyncio.run(EmailRouter(primary).send_message(MESSAGE))
        assert result.success is False
