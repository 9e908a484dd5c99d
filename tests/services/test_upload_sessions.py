"""Tests for upload session staging and one-shot consumption."""

import pytest

from aios.services.upload_sessions import (
    UPLOAD_HASH_PREFIX,
    UPLOAD_KEY_PREFIX,
    consume_upload,
    stage_upload,
)

ROWS = [["SKU", "Name"], ["W1", "Widget"]]


class TestStageUpload:
    """Idempotent staging of identical content."""

    @pytest.mark.asyncio
    async def test_identical_content_reuses_key(self, store):
        first = await stage_upload(store, ROWS)
        second = await stage_upload(store, [list(r) for r in ROWS])

        assert first.already_exists is False
        assert second.already_exists is True
        assert second.upload_key == first.upload_key

    @pytest.mark.asyncio
    async def test_different_content_gets_new_key(self, store):
        first = await stage_upload(store, ROWS)
        other = await stage_upload(store, [["SKU"], ["X9"]])
        assert other.upload_key != first.upload_key
        assert other.already_exists is False

    @pytest.mark.asyncio
    async def test_dangling_hash_pointer_is_not_reused(self, store):
        first = await stage_upload(store, ROWS)
        await store.delete(f"{UPLOAD_KEY_PREFIX}{first.upload_key}")

        again = await stage_upload(store, ROWS)
        assert again.already_exists is False
        assert again.upload_key != first.upload_key

    @pytest.mark.asyncio
    async def test_sessions_expire(self):
        from aios.services.kv_store import MemoryKeyValueStore

        now = [0.0]
        store = MemoryKeyValueStore(clock=lambda: now[0])
        staged = await stage_upload(store, ROWS)

        now[0] = 3601.0
        assert await consume_upload(store, staged.upload_key) is None


class TestConsumeUpload:
    @pytest.mark.asyncio
    async def test_consume_is_single_use(self, store):
        staged = await stage_upload(store, ROWS)

        assert await consume_upload(store, staged.upload_key) == ROWS
        assert await consume_upload(store, staged.upload_key) is None
        assert await store.scan_prefix(UPLOAD_HASH_PREFIX) == []

    @pytest.mark.asyncio
    async def test_unknown_key(self, store):
        assert await consume_upload(store, "nope") is None
