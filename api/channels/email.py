"""
Email relays for guest replies.

Supports the Gmail REST API (primary) and AWS SES (fallback).
"""

import asyncio
import base64
import logging
from typing import Awaitable, Callable, Optional

import boto3
import httpx

from .base import ChannelMessage, ChannelResponse, MailRelay

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


def build_raw_message(message: ChannelMessage) -> str:
    """RFC 2822 reply, base64url encoded without padding."""
    headers = [
        f"To: {message.to}",
        f"Subject: {message.reply_subject}",
        "Content-Type: text/plain; charset=utf-8",
    ]
    if message.in_reply_to:
        headers.append(f"In-Reply-To: {message.in_reply_to}")
        headers.append(f"References: {message.in_reply_to}")

    raw = "\r\n".join(headers) + "\r\n\r\n" + message.content
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def static_token(token: str) -> TokenProvider:
    async def provide() -> str:
        return token
    return provide


class GmailRelay(MailRelay):
    """
    Replies through the Gmail API on the host's mailbox.

    OAuth refresh is outside this class: token_provider returns a valid
    access token for every call.
    """

    DEFAULT_BASE_URL = "https://gmail.googleapis.com/gmail/v1"

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send_message(self, message: ChannelMessage) -> ChannelResponse:
        url = f"{self.base_url}/users/me/messages/send"
        payload = {"raw": build_raw_message(message)}
        if message.thread_id:
            payload["threadId"] = message.thread_id

        try:
            token = await self.token_provider()
            headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=headers, timeout=self.timeout)
                resp.raise_for_status()
                data = resp.json()
                return ChannelResponse(
                    success=True,
                    message_id=data.get("id"),
                    thread_id=data.get("threadId"),
                )
        except Exception as e:
            logger.error(f"Gmail send failed: {e}")
            return ChannelResponse(success=False, error=str(e))

    async def health_check(self) -> bool:
        try:
            token = await self.token_provider()
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.get(
                    f"{self.base_url}/users/me/profile",
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
                return resp.status_code == 200
        except Exception:
            return False


class SESRelay(MailRelay):
    """Replies via AWS SES. Thread ids are not preserved."""

    def __init__(self, region: str = "us-east-1", from_email: str = ""):
        self.region = region
        self.from_email = from_email
        self._client = None

    def _get_client(self):
        if not self._client:
            self._client = boto3.client("ses", region_name=self.region)
        return self._client

    async def send_message(self, message: ChannelMessage) -> ChannelResponse:
        try:
            client = self._get_client()
            resp = await asyncio.to_thread(
                client.send_email,
                Source=self.from_email,
                Destination={"ToAddresses": [message.to]},
                Message={
                    "Subject": {"Data": message.reply_subject},
                    "Body": {"Text": {"Data": message.content}},
                },
            )
            return ChannelResponse(success=True, message_id=resp.get("MessageId"))
        except Exception as e:
            logger.error(f"SES send failed: {e}")
            return ChannelResponse(success=False, error=str(e))

    async def health_check(self) -> bool:
        try:
            client = self._get_client()
            await asyncio.to_thread(client.get_send_quota)
            return True
        except Exception:
            return False


class EmailRouter(MailRelay):
    """Routes replies through a primary relay with an optional fallback."""

    def __init__(self, primary: MailRelay, fallback: Optional[MailRelay] = None):
        self.primary = primary
        self.fallback = fallback

    async def send_message(self, message: ChannelMessage) -> ChannelResponse:
        result = await self.primary.send_message(message)
        if not result.success and self.fallback:
            logger.warning("Primary mail relay failed, trying fallback")
            result = await self.fallback.send_message(message)
        return result

    async def health_check(self) -> bool:
        if await self.primary.health_check():
            return True
        return bool(self.fallback) and await self.fallback.health_check()
