# tests/unit/storage/test_versioned_store.py — v1
"""Tests for storage/versioned_store.py — document + version stamp."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from modelsync.storage.versioned_store import (
    BACKUP_KEY,
    HASH_KEY,
    LIST_KEY,
    MODEL_BLACKLIST_KEY,
    VERSION_KEY,
    DocumentCorruptError,
    next_version,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)


class TestNextVersion:
    def test_iso_millis(self):
        assert next_version(None, now=NOW) == "2026-03-01T12:00:00.123Z"

    def test_tagged(self):
        assert next_version(None, tag="cleanup", now=NOW) == "2026-03-01T12:00:00.123Z#cleanup"

    def test_strictly_greater_on_clock_skew(self):
        previous = "2026-03-01T12:00:05.000Z"
        assert next_version(previous, now=NOW) == "2026-03-01T12:00:05.001Z"

    def test_strictly_greater_than_tagged_previous(self):
        previous = "2026-03-01T12:00:00.123Z#cleanup"
        version = next_version(previous, now=NOW)
        assert version == "2026-03-01T12:00:00.124Z"
        assert version > previous.split("#")[0]

    def test_unparsable_previous_ignored(self):
        assert next_version("legacy-version", now=NOW) == "2026-03-01T12:00:00.123Z"


class TestReadWrite:
    @pytest.mark.asyncio
    async def test_read_missing(self, store):
        snapshot = await store.read()
        assert not snapshot.exists
        assert snapshot.version is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, store, sample_document):
        version = await store.write(sample_document, "supervisor-1", "supervisor")
        snapshot = await store.read()
        assert snapshot.version == version
        assert snapshot.data["producers"] == sample_document["producers"]
        assert snapshot.data["last_supervisor_run"] == "supervisor-1"
        assert snapshot.data["last_supervisor_update_ts"] == version

    @pytest.mark.asyncio
    async def test_write_role_metadata(self, store):
        await store.write({"producers": {}}, "syncer-1", "syncer", content_hash="abc")
        snapshot = await store.read()
        assert snapshot.data["last_syncer_run"] == "syncer-1"
        assert "last_supervisor_run" not in snapshot.data
        assert await store.current_hash() == "abc"

    @pytest.mark.asyncio
    async def test_versions_increase(self, store):
        v1 = await store.write({"producers": {}}, "op", "curator")
        v2 = await store.write({"producers": {}}, "op", "curator", previous_version=v1)
        assert v2 > v1
        assert await store.current_version() == v2

    @pytest.mark.asyncio
    async def test_corrupt_document(self, store, models_kv):
        await models_kv.put(LIST_KEY, "{broken")
        with pytest.raises(DocumentCorruptError):
            await store.read()

    @pytest.mark.asyncio
    async def test_non_object_document(self, store, models_kv):
        await models_kv.put(LIST_KEY, "[1, 2]")
        with pytest.raises(DocumentCorruptError, match="not a JSON object"):
            await store.read()

    @pytest.mark.asyncio
    async def test_hash_untouched_without_content_hash(self, store, models_kv):
        await models_kv.put(HASH_KEY, "old")
        await store.write({"producers": {}}, "op", "supervisor")
        assert await models_kv.get(HASH_KEY) == "old"
        assert await models_kv.get(VERSION_KEY) is not None


class TestBackupsAndBlacklist:
    @pytest.mark.asyncio
    async def test_backup_daily_snapshot_once(self, store, models_kv):
        await store.backup("first", today="2026-03-01")
        await store.backup("second", today="2026-03-01")
        assert await models_kv.get(BACKUP_KEY) == "second"
        assert await models_kv.get("list_backup_2026-03-01") == "first"

    @pytest.mark.asyncio
    async def test_backup_skips_empty(self, store, models_kv):
        await store.backup(None)
        assert await models_kv.get(BACKUP_KEY) is None

    @pytest.mark.asyncio
    async def test_model_blacklist(self, store, models_kv):
        await models_kv.put(MODEL_BLACKLIST_KEY, json.dumps(["openai/gpt-3", 7]))
        assert await store.read_model_blacklist() == {"openai/gpt-3", "7"}

    @pytest.mark.asyncio
    async def test_model_blacklist_unparsable(self, store, models_kv):
        await models_kv.put(MODEL_BLACKLIST_KEY, "nope")
        assert await store.read_model_blacklist() == set()
