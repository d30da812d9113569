# tests/unit/kv/test_json_store.py — v1
"""Tests for kv/json_store.py — one JSON envelope file per key."""

from __future__ import annotations

import json

import pytest

from modelsync.kv.json_store import JsonKVStore


class TestJsonKVStore:
    @pytest.mark.asyncio
    async def test_put_get(self, tmp_path):
        kv = JsonKVStore(tmp_path / "models")
        await kv.put("list", '{"producers":{}}')
        assert await kv.get("list") == '{"producers":{}}'

    @pytest.mark.asyncio
    async def test_missing_key(self, tmp_path):
        assert await JsonKVStore(tmp_path).get("nope") is None

    @pytest.mark.asyncio
    async def test_keys_with_separators(self, tmp_path):
        kv = JsonKVStore(tmp_path)
        await kv.put("blacklist:openai/gpt-4o", "1")
        assert await kv.get("blacklist:openai/gpt-4o") == "1"
        assert await kv.list_keys("blacklist:") == ["blacklist:openai/gpt-4o"]

    @pytest.mark.asyncio
    async def test_expired_entry_removed(self, tmp_path):
        kv = JsonKVStore(tmp_path)
        await kv.put("cleanup_lock", "op", ttl_seconds=-1)
        assert await kv.get("cleanup_lock") is None
        assert list(tmp_path.glob("*.json")) == []

    @pytest.mark.asyncio
    async def test_envelope_format(self, tmp_path):
        kv = JsonKVStore(tmp_path)
        await kv.put("version", "2026-01-01T00:00:00.000Z")
        envelope = json.loads((tmp_path / "version.json").read_text(encoding="utf-8"))
        assert envelope == {"value": "2026-01-01T00:00:00.000Z", "expires_at": None}

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_missing(self, tmp_path):
        kv = JsonKVStore(tmp_path)
        (tmp_path / "list.json").write_text("{not json", encoding="utf-8")
        assert await kv.get("list") is None

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        kv = JsonKVStore(tmp_path)
        await kv.put("k", "v")
        await kv.delete("k")
        await kv.delete("k")
        assert await kv.get("k") is None
