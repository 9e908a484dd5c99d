"""Per-identity conversation history kept in the key-value store.

History is a cache, not a system of record: entries expire after seven
days of inactivity. Only the most recent ``HISTORY_LIMIT`` messages are
sent to the model, and stored history is trimmed to that window plus the
newest exchange on every write.
"""

import logging
from typing import Any

from aios.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
HISTORY_TTL_SECONDS = 60 * 60 * 24 * 7


def whatsapp_history_key(phone_number: str) -> str:
    return f"chat:history:{phone_number}"


def slack_history_key(channel: str, user: str) -> str:
    return f"slack:history:{channel}:{user}"


def bound_history(history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Return the last ``HISTORY_LIMIT`` messages."""
    return list(history or [])[-HISTORY_LIMIT:]


async def load_history(store: KeyValueStore, key: str) -> list[dict[str, Any]]:
    history = await store.get(key)
    if not isinstance(history, list):
        return []
    return bound_history(history)


async def append_exchange(
    store: KeyValueStore,
    key: str,
    history: list[dict[str, Any]],
    user_text: str,
    reply: str,
) -> list[dict[str, Any]]:
    """Persist ``history`` plus one user/assistant exchange.

    Args:
        store: Key-value store.
        key: History key for the identity.
        history: History the turn was generated from.
        user_text: Inbound user message.
        reply: Generated assistant reply.

    Returns:
        The stored history.
    """
    updated = bound_history(history) + [
        {"role": "user", "content": user_text},
        {"role": "assistant", "content": reply},
    ]
    await store.set(key, updated, HISTORY_TTL_SECONDS)
    return updated
