# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides settings without .env, in-memory stores, a sample catalog
document and scripted fake clients. No network; all I/O is in memory.
"""

from __future__ import annotations

import copy
from typing import Any

import pytest

from modelsync.clients.base_client import BaseGenerationClient, BaseTranslationClient
from modelsync.config.settings import Settings
from modelsync.core.hashing import simple_hash
from modelsync.kv.memory_store import InMemoryKVStore
from modelsync.locking.keyed_lock import KeyedLock
from modelsync.storage.versioned_store import VersionedStore


# === FIXTURES: Fake clients ===


class FakeTranslator(BaseTranslationClient):
    """Returns ``"[<lang>] <text>"`` or raises the queued errors first."""

    def __init__(self, errors: list[Exception] | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.errors = list(errors or [])

    @property
    def resource_id(self) -> str:
        return "fake-translate"

    async def translate(self, text: str, target_lang: str) -> str:
        self.calls.append((text, target_lang))
        if self.errors:
            raise self.errors.pop(0)
        return f"[{target_lang}] {text}"


class FakeGenerator(BaseGenerationClient):
    """Returns a fixed description or raises the queued errors first."""

    def __init__(self, text: str = "A versatile family of language models for many tasks.",
                 errors: list[Exception] | None = None) -> None:
        self.text = text
        self.calls: list[tuple[str, str]] = []
        self.errors = list(errors or [])

    async def generate(self, prompt: str, model_id: str) -> str:
        self.calls.append((prompt, model_id))
        if self.errors:
            raise self.errors.pop(0)
        return self.text


# === FIXTURES: Settings & stores ===


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env, with no settle delay."""
    return Settings(
        _env_file=None,
        kv_backend="memory",
        lock_settle_delay_s=0,
        retry_base_delay_s=0,
        conflict_backoff_base_s=0,
        target_languages="tr,fr",
    )


@pytest.fixture
def models_kv() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def locks_kv() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture
def store(models_kv: InMemoryKVStore) -> VersionedStore:
    return VersionedStore(models_kv)


@pytest.fixture
def locks(locks_kv: InMemoryKVStore) -> KeyedLock:
    return KeyedLock(locks_kv, settle_delay_s=0)


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


# === FIXTURES: Sample data ===


SAMPLE_DOCUMENT: dict[str, Any] = {
    "producers": {
        "OpenAI": {
            "GPT-4o": {
                "series_description": {
                    "en": "Flagship multimodal models from OpenAI.",
                    "processing_status": {
                        "en": "completed",
                        "tr": "completed",
                        "tr_source_hash": simple_hash("Flagship multimodal models from OpenAI."),
                    },
                    "tr": "OpenAI'nin amiral gemisi modelleri.",
                },
                "Mini": {
                    "id": "openai/gpt-4o-mini",
                    "source": "openrouter",
                    "description": {"en": "Small and fast."},
                },
            },
        },
        "Vertex": {
            "gemma-local": {
                "Default": {
                    "id": "gemma-local",
                    "source": "manual",
                    "details": {"en": {"title": "Gemma Local", "summary": "On-prem Gemma."}},
                },
            },
        },
    },
}


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """Deep copy of a small catalog with one online and one manual series."""
    return copy.deepcopy(SAMPLE_DOCUMENT)
