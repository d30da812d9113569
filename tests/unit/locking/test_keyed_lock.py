# tests/unit/locking/test_keyed_lock.py — v1
"""Tests for locking/keyed_lock.py — TTL-bounded advisory locks."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from modelsync.kv.memory_store import InMemoryKVStore
from modelsync.locking.keyed_lock import SUPERVISOR_LOCK, KeyedLock, LockError


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestAcquireRelease:
    @pytest.mark.asyncio
    async def test_acquire_free_lock(self, locks):
        assert await locks.acquire(SUPERVISOR_LOCK, "op-1", 300)
        assert await locks.holder(SUPERVISOR_LOCK) == "op-1"

    @pytest.mark.asyncio
    async def test_second_acquirer_refused(self, locks):
        assert await locks.acquire(SUPERVISOR_LOCK, "op-1", 300)
        assert not await locks.acquire(SUPERVISOR_LOCK, "op-2", 300)
        assert await locks.holder(SUPERVISOR_LOCK) == "op-1"

    @pytest.mark.asyncio
    async def test_release_frees(self, locks):
        await locks.acquire(SUPERVISOR_LOCK, "op-1", 300)
        await locks.release(SUPERVISOR_LOCK)
        assert await locks.holder(SUPERVISOR_LOCK) is None
        assert await locks.acquire(SUPERVISOR_LOCK, "op-2", 300)

    @pytest.mark.asyncio
    async def test_crashed_holder_expires(self):
        clock = FakeClock()
        locks = KeyedLock(InMemoryKVStore(clock=clock), settle_delay_s=0)
        await locks.acquire(SUPERVISOR_LOCK, "crashed", 300)
        clock.now += 301
        assert await locks.acquire(SUPERVISOR_LOCK, "op-2", 300)

    @pytest.mark.asyncio
    async def test_lost_race_after_settle(self):
        store = InMemoryKVStore()
        store.get = AsyncMock(side_effect=[None, "other-op"])
        locks = KeyedLock(store, settle_delay_s=0)
        assert not await locks.acquire(SUPERVISOR_LOCK, "op-1", 300)

    @pytest.mark.asyncio
    async def test_store_error_means_not_acquired(self):
        store = InMemoryKVStore()
        store.get = AsyncMock(side_effect=ConnectionError("down"))
        locks = KeyedLock(store, settle_delay_s=0)
        assert not await locks.acquire(SUPERVISOR_LOCK, "op-1", 300)

    @pytest.mark.asyncio
    async def test_release_error_swallowed(self):
        store = InMemoryKVStore()
        store.delete = AsyncMock(side_effect=ConnectionError("down"))
        await KeyedLock(store, settle_delay_s=0).release(SUPERVISOR_LOCK)


class TestHeld:
    @pytest.mark.asyncio
    async def test_context_releases_on_error(self, locks):
        with pytest.raises(RuntimeError):
            async with locks.held("data_write_lock", "curator-1", 20):
                assert await locks.holder("data_write_lock") == "curator-1"
                raise RuntimeError("boom")
        assert await locks.holder("data_write_lock") is None

    @pytest.mark.asyncio
    async def test_require_raises_with_holder(self, locks):
        await locks.acquire("data_write_lock", "syncer-1", 20)
        with pytest.raises(LockError) as exc_info:
            await locks.require("data_write_lock", "curator-1", 20)
        assert exc_info.value.holder == "syncer-1"
        assert exc_info.value.lock_key == "data_write_lock"
