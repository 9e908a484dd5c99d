"""WhatsApp and Slack channel adapters.

Each adapter pulls one user message out of a channel payload, runs a
complete (non-streamed) orchestrator turn against that identity's stored
history, persists the exchange and relays the reply through the channel's
send API.
"""

import logging
import re
from typing import Any

from aios.db.connection import get_db_context
from aios.db.models import ChatMessage
from aios.services.conversation_history import (
    append_exchange,
    load_history,
    slack_history_key,
    whatsapp_history_key,
)
from aios.services.kv_store import KeyValueStore
from aios.services.whatsapp_client import get_verification_token

logger = logging.getLogger(__name__)

SLACK_EVENT_DEDUP_TTL = 300
SLACK_EVENT_DEDUP_PREFIX = "slack:event:"
SLACK_EVENT_TYPES = {"app_mention", "message"}
_MENTION_RE = re.compile(r"<@[A-Z0-9]+>")


# -- WhatsApp --------------------------------------------------------------


def verify_whatsapp_webhook(mode: str | None, token: str | None, challenge: str | None) -> str | None:
    """Return the challenge when the subscription request is valid, else None."""
    expected = get_verification_token()
    if mode == "subscribe" and expected and token == expected:
        logger.info("WhatsApp webhook verified")
        return challenge
    logger.warning("WhatsApp webhook verification failed")
    return None


def _first_whatsapp_message(body: dict[str, Any]) -> dict[str, Any] | None:
    try:
        messages = body["entry"][0]["changes"][0]["value"].get("messages") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return messages[0] if messages else None


def _archive_whatsapp_exchange(phone_number: str, user_text: str, reply: str) -> None:
    try:
        with get_db_context() as db:
            db.add(ChatMessage(phone_number=phone_number, role="user", content=user_text))
            db.add(ChatMessage(phone_number=phone_number, role="assistant", content=reply))
    except Exception as e:
        logger.warning("Could not archive WhatsApp exchange for %s: %s", phone_number, e)


async def handle_whatsapp_message(
    body: dict[str, Any],
    orchestrator: Any,
    store: KeyValueStore,
    whatsapp: Any,
) -> bool:
    """Answer one inbound WhatsApp text message.

    Payloads without a text message (status callbacks, media) are ignored.

    Returns:
        True when a reply was sent.
    """
    message = _first_whatsapp_message(body)
    if message is None or message.get("type") != "text":
        return False

    sender = message.get("from", "")
    message_id = message.get("id", "")
    text = (message.get("text") or {}).get("body", "")
    if not sender or not text:
        return False

    await whatsapp.mark_read_with_typing(message_id)

    key = whatsapp_history_key(sender)
    history = await load_history(store, key)
    reply = await orchestrator.generate_response(text, history)

    await append_exchange(store, key, history, text, reply)
    _archive_whatsapp_exchange(sender, text, reply)
    await whatsapp.send_message(sender, message_id, reply)
    return True


# -- Slack -----------------------------------------------------------------


def strip_slack_mentions(text: str) -> str:
    """Remove ``<@U123>`` user-mention tokens and surrounding whitespace."""
    return _MENTION_RE.sub("", text or "").strip()


async def handle_slack_event(
    body: dict[str, Any],
    orchestrator: Any,
    store: KeyValueStore,
    slack: Any,
) -> bool:
    """Answer one Slack event callback in-thread.

    Bot-originated and subtyped events are ignored, and each event id is
    handled at most once within ``SLACK_EVENT_DEDUP_TTL`` seconds.

    Returns:
        True when a reply was sent.
    """
    event = body.get("event") or {}
    if event.get("bot_id") or event.get("subtype"):
        return False
    if event.get("type") not in SLACK_EVENT_TYPES:
        return False

    event_id = body.get("event_id")
    if event_id:
        dedup_key = f"{SLACK_EVENT_DEDUP_PREFIX}{event_id}"
        if await store.get(dedup_key):
            logger.info("Duplicate Slack event %s ignored", event_id)
            return False
        await store.set(dedup_key, True, SLACK_EVENT_DEDUP_TTL)

    text = strip_slack_mentions(event.get("text", ""))
    if not text:
        return False

    channel = event.get("channel", "")
    user = event.get("user", "")
    thread_ts = event.get("thread_ts") or event.get("ts")

    key = slack_history_key(channel, user)
    history = await load_history(store, key)
    reply = await orchestrator.generate_response(text, history)
    if not reply or not reply.strip():
        logger.warning("Empty reply for Slack event %s, nothing sent", event_id)
        return False

    await append_exchange(store, key, history, text, reply)
    await slack.send_message(channel, reply, thread_ts)
    return True
