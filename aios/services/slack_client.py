"""Slack Web API client plus request-signature verification.

Signatures follow Slack's v0 scheme: ``v0=`` + hex HMAC-SHA256 of
``v0:<timestamp>:<raw body>`` with the app signing secret. Requests
older than five minutes are rejected.
"""

import hashlib
import hmac
import logging
import os
import time
from typing import Any
from urllib.parse import urlencode

import httpx

from aios.errors import ChannelDeliveryError, ValidationError

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api"
SLACK_INSTALL_URL = "https://slack.com/oauth/v2/authorize"
SLACK_BOT_SCOPES = "app_mentions:read,chat:write,im:history,im:read,channels:history"
REPLAY_WINDOW_SECONDS = 300


def get_signing_secret() -> str:
    return os.environ.get("SLACK_SIGNING_SECRET", "").strip()


def compute_signature(signing_secret: str, timestamp: str, raw_body: bytes | str) -> str:
    """Return the expected ``v0=...`` signature for a request."""
    body = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
    base = f"v0:{timestamp}:{body}".encode("utf-8")
    digest = hmac.new(signing_secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"v0={digest}"


class SlackClient:
    """Slack chat.postMessage, OAuth exchange and signature checks."""

    def __init__(
        self,
        bot_token: str | None = None,
        signing_secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token or os.environ.get("SLACK_BOT_TOKEN", "")
        self._signing_secret = signing_secret if signing_secret is not None else get_signing_secret()
        self._transport = transport

    def verify_request(
        self,
        signature: str,
        timestamp: str,
        raw_body: bytes | str,
        now: float | None = None,
    ) -> bool:
        """Verify a Slack request signature.

        Returns True without checking when no signing secret is configured.
        """
        if not self._signing_secret:
            logger.warning("SLACK_SIGNING_SECRET not set, skipping verification")
            return True

        try:
            ts = int(timestamp)
        except (TypeError, ValueError):
            logger.warning("Slack request has no valid timestamp")
            return False

        current = int(now if now is not None else time.time())
        if ts < current - REPLAY_WINDOW_SECONDS:
            logger.warning("Slack request timestamp too old, possible replay attack")
            return False

        expected = compute_signature(self._signing_secret, timestamp, raw_body)
        return hmac.compare_digest(expected, signature or "")

    async def send_message(self, channel: str, text: str, thread_ts: str | None = None) -> None:
        """Post a message, in-thread when ``thread_ts`` is given.

        Raises:
            ChannelDeliveryError: On transport failure or ``ok: false``.
        """
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        headers = {"Authorization": f"Bearer {self._bot_token}"}
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            try:
                resp = await client.post(
                    f"{SLACK_API_BASE}/chat.postMessage", json=payload, headers=headers
                )
            except httpx.HTTPError as e:
                raise ChannelDeliveryError(f"Error sending Slack message: {e}") from e
        data = resp.json()
        if not data.get("ok"):
            logger.error("Slack API error: %s", data.get("error"))
            raise ChannelDeliveryError(f"Slack API error: {data.get('error')}")

    async def exchange_oauth_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an OAuth code via oauth.v2.access.

        Raises:
            ValidationError: If client credentials are missing or Slack
                rejects the code.
        """
        client_id = os.environ.get("SLACK_CLIENT_ID", "").strip()
        client_secret = os.environ.get("SLACK_CLIENT_SECRET", "").strip()
        if not client_id or not client_secret:
            raise ValidationError("SLACK_CLIENT_ID or SLACK_CLIENT_SECRET not configured")

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            resp = await client.post(
                f"{SLACK_API_BASE}/oauth.v2.access",
                data={"code": code, "redirect_uri": redirect_uri},
                auth=(client_id, client_secret),
            )
        data = resp.json()
        if not data.get("ok"):
            logger.error("Slack OAuth error: %s", data.get("error"))
            raise ValidationError(f"Slack OAuth error: {data.get('error')}")
        return data


def build_install_url(redirect_uri: str) -> str:
    """Return the Slack 'Add to Slack' authorize URL."""
    params = {
        "client_id": os.environ.get("SLACK_CLIENT_ID", "").strip(),
        "scope": SLACK_BOT_SCOPES,
        "redirect_uri": redirect_uri,
    }
    return f"{SLACK_INSTALL_URL}?{urlencode(params)}"
