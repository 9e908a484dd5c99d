"""TTL key-value store used for history, uploads, catalogs and quotes.

Two backends share one async interface: a process-local dictionary
(default, and what tests use) and Redis when ``REDIS_URL`` is set.
Values are JSON-serializable Python objects.

All callers obtain the store through ``get_kv_store()``; this module owns
the process-global singleton.
"""

import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Async get/set/delete/prefix-scan with optional per-key TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    @abstractmethod
    async def scan_prefix(self, prefix: str) -> list[str]:
        """Return all live keys starting with ``prefix``."""

    async def close(self) -> None:
        """Release backend resources."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store with monotonic-clock expiry."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._expired(expires_at):
            self._data.pop(key, None)
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (json.dumps(value, default=str), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def scan_prefix(self, prefix: str) -> list[str]:
        keys = []
        for key, (_, expires_at) in list(self._data.items()):
            if self._expired(expires_at):
                self._data.pop(key, None)
                continue
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store. Values are stored as JSON strings."""

    def __init__(self, url: str) -> None:
        self._client = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        payload = json.dumps(value, default=str)
        if ttl_seconds:
            await self._client.set(key, payload, ex=ttl_seconds)
        else:
            await self._client.set(key, payload)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def scan_prefix(self, prefix: str) -> list[str]:
        keys = [key async for key in self._client.scan_iter(match=f"{prefix}*")]
        return sorted(keys)

    async def close(self) -> None:
        await self._client.aclose()


# -- Singleton -------------------------------------------------------------
_store: KeyValueStore | None = None
_store_lock = asyncio.Lock()


def _create_store() -> KeyValueStore:
    url = os.environ.get("REDIS_URL", "").strip()
    if url:
        logger.info("Using Redis key-value store")
        return RedisKeyValueStore(url)
    logger.info("REDIS_URL not set, using in-memory key-value store")
    return MemoryKeyValueStore()


async def get_kv_store() -> KeyValueStore:
    """Get or create the process-global key-value store."""
    global _store
    if _store is not None:
        return _store
    async with _store_lock:
        if _store is None:
            _store = _create_store()
    return _store


def set_kv_store(store: KeyValueStore | None) -> None:
    """Replace the process-global store. Used by tests."""
    global _store
    _store = store


async def shutdown_kv_store() -> None:
    """Close the process-global store, if one was created."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
