"""Tests for the in-memory key-value store backend and singleton."""

import pytest

from aios.services import kv_store
from aios.services.kv_store import MemoryKeyValueStore, RedisKeyValueStore


class TestMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        store = MemoryKeyValueStore()
        await store.set("a", {"x": [1, 2]})
        assert await store.get("a") == {"x": [1, 2]}

        await store.delete("a")
        await store.delete("a")
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_ttl_expiry(self):
        now = [100.0]
        store = MemoryKeyValueStore(clock=lambda: now[0])
        await store.set("k", "v", ttl_seconds=10)

        now[0] = 109.0
        assert await store.get("k") == "v"
        now[0] = 110.0
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_scan_prefix_is_sorted_and_skips_expired(self):
        now = [0.0]
        store = MemoryKeyValueStore(clock=lambda: now[0])
        await store.set("rfq:followup:B", 1)
        await store.set("rfq:followup:A", 1)
        await store.set("rfq:followup:C", 1, ttl_seconds=5)
        await store.set("rfq:data:A", 1)

        now[0] = 6.0
        assert await store.scan_prefix("rfq:followup:") == ["rfq:followup:A", "rfq:followup:B"]

    @pytest.mark.asyncio
    async def test_values_are_copies(self):
        store = MemoryKeyValueStore()
        value = [["SKU"]]
        await store.set("rows", value)
        value.append(["mutated"])
        assert await store.get("rows") == [["SKU"]]


class TestStoreSingleton:
    @pytest.mark.asyncio
    async def test_memory_backend_without_redis_url(self):
        kv_store.set_kv_store(None)
        try:
            store = await kv_store.get_kv_store()
            assert isinstance(store, MemoryKeyValueStore)
            assert await kv_store.get_kv_store() is store
        finally:
            await kv_store.shutdown_kv_store()

    @pytest.mark.asyncio
    async def test_redis_backend_selected_by_url(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        kv_store.set_kv_store(None)
        try:
            store = await kv_store.get_kv_store()
            assert isinstance(store, RedisKeyValueStore)
        finally:
            kv_store.set_kv_store(None)
