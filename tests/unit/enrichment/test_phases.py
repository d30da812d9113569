# tests/unit/enrichment/test_phases.py — v1
"""Tests for enrichment/phases.py — description generation and translation."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock

import pytest

from modelsync.clients.errors import ApiError
from modelsync.core.hashing import simple_hash
from modelsync.enrichment import phases
from modelsync.enrichment.phases import (
    DescriptionPhase,
    ProcessingState,
    TranslationPhase,
    build_series_prompt,
    online_model_ids,
)
from modelsync.kv.memory_store import InMemoryKVStore
from modelsync.retry.caller import RetryingCaller, RetryPolicy
from modelsync.tasks.finder import find_translation_tasks

DISABLED = ApiError(
    "Google Translate API error: Status: 403, Body: Cloud Translation API has not been used",
    status=403,
)


def _caller(settings) -> RetryingCaller:
    return RetryingCaller(InMemoryKVStore(), RetryPolicy.from_settings(settings), sleep=AsyncMock())


def _many_variants(count: int) -> dict:
    series = {"series_description": {"en": "Series.", "processing_status": {"en": "completed"}}}
    for i in range(count):
        series[f"V{i}"] = {"id": f"p/v{i}", "source": "openrouter", "description": {"en": f"Variant {i}."}}
    series["series_description"]["tr"] = "Seri."
    series["series_description"]["processing_status"].update(
        {"tr": "completed", "tr_source_hash": simple_hash("Series.")}
    )
    return {"producers": {"P": {"S": series}}}


def _variant_status(document: dict, variant: str = "V0") -> dict:
    return document["producers"]["P"]["S"][variant]["description"]["processing_status"]


class TestHelpers:
    def test_prompt_substitution(self):
        prompt = build_series_prompt("{PRODUCER_NAME}/{SERIES_NAME} <= {MAX_LENGTH} {MAX_LENGTH}", "Meta", "Llama", 160)
        assert prompt == "Meta/Llama <= 160 160"

    def test_online_model_ids(self, sample_document):
        assert online_model_ids(sample_document) == ["openai/gpt-4o-mini"]


class TestDescriptionPhase:
    @pytest.mark.asyncio
    async def test_generates_missing_english(self, settings, generator, sample_document):
        del sample_document["producers"]["OpenAI"]["GPT-4o"]["series_description"]
        state = ProcessingState(document=sample_document)
        await DescriptionPhase(generator, _caller(settings), settings, rng=random.Random(0)).run(state)

        desc = sample_document["producers"]["OpenAI"]["GPT-4o"]["series_description"]
        assert desc["en"] == generator.text
        assert desc["processing_status"]["en"] == "generated"
        assert state.changes_made
        assert state.descriptions_generated == 1
        assert generator.calls[0][1] == "openai/gpt-4o-mini"
        assert "OpenAI" in generator.calls[0][0]

    @pytest.mark.asyncio
    async def test_out_of_range_text_rejected(self, settings, generator, sample_document):
        del sample_document["producers"]["OpenAI"]["GPT-4o"]["series_description"]
        generator.text = "Too short."
        state = ProcessingState(document=sample_document)
        await DescriptionPhase(generator, _caller(settings), settings).run(state)

        assert "series_description" not in sample_document["producers"]["OpenAI"]["GPT-4o"]
        assert not state.changes_made
        # one model, exhausted for this series after two failures
        assert len(generator.calls) == settings.max_api_failures_per_model_in_task

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, settings, generator, sample_document):
        state = ProcessingState(document=sample_document)
        await DescriptionPhase(generator, _caller(settings), settings).run(state)
        assert generator.calls == []


class TestTranslationPhase:
    @pytest.mark.asyncio
    async def test_chunk_limits_work(self, settings, translator):
        settings = settings.model_copy(update={"target_languages": "tr", "processing_chunk_size": 4})
        document = _many_variants(10)
        state = ProcessingState(document=document)
        await TranslationPhase(translator, _caller(settings), settings).run(state)

        assert len(translator.calls) == 4
        assert state.translations_completed == 4
        assert len(find_translation_tasks(document, ["tr"])) == 6

    @pytest.mark.asyncio
    async def test_success_records_status_and_hash(self, settings, translator):
        settings = settings.model_copy(update={"target_languages": "tr"})
        document = _many_variants(1)
        await TranslationPhase(translator, _caller(settings), settings).run(ProcessingState(document=document))

        description = document["producers"]["P"]["S"]["V0"]["description"]
        assert description["tr"] == "[tr] Variant 0."
        assert description["processing_status"] == {
            "tr": "completed", "tr_source_hash": simple_hash("Variant 0."), "cumulativeFailureCount": 0,
        }

    @pytest.mark.asyncio
    async def test_verification_marks_completed(self, settings, translator):
        document = {"producers": {"P": {"S": {
            "series_description": {"en": "Generated text.", "processing_status": {"en": "generated"}},
            "V": {"id": "p/v", "source": "openrouter"},
        }}}}
        state = ProcessingState(document=document)
        await TranslationPhase(translator, _caller(settings), settings).run(state)

        status = document["producers"]["P"]["S"]["series_description"]["processing_status"]
        assert status["en"] == "completed"
        assert state.verifications == 1
        assert len(translator.calls) == 2

    @pytest.mark.asyncio
    async def test_failure_toggles_retry_then_failed(self, settings, translator):
        settings = settings.model_copy(update={
            "target_languages": "tr", "max_total_api_failures_in_run": 100,
        })
        translator.errors = [ApiError("busy", status=503)] * 4
        caller = _caller(settings)
        document = _many_variants(1)

        state = ProcessingState(document=document)
        await TranslationPhase(translator, caller, settings).run(state)
        assert _variant_status(document)["tr"] == "translation_retry"
        assert _variant_status(document)["cumulativeFailureCount"] == 1
        assert state.translations_failed == 1
        assert state.changes_made

        await TranslationPhase(translator, caller, settings).run(ProcessingState(document=document))
        assert _variant_status(document)["tr"] == "FAILED"
        assert _variant_status(document)["cumulativeFailureCount"] == 2

    @pytest.mark.asyncio
    async def test_cumulative_ceiling_stamps_hash(self, settings, translator):
        settings = settings.model_copy(update={
            "target_languages": "tr", "max_cumulative_failures_per_item": 1,
            "max_total_api_failures_in_run": 100,
        })
        translator.errors = [ApiError("busy", status=503)] * 2
        document = _many_variants(1)
        await TranslationPhase(translator, _caller(settings), settings).run(ProcessingState(document=document))

        status = _variant_status(document)
        assert status["tr"] == "FAILED"
        assert status["tr_source_hash"] == simple_hash("Variant 0.")
        assert find_translation_tasks(document, ["tr"]) == []

    @pytest.mark.asyncio
    async def test_service_disabled_halts_phase(self, settings, translator):
        settings = settings.model_copy(update={"target_languages": "tr"})
        translator.errors = [DISABLED]
        document = _many_variants(3)
        state = ProcessingState(document=document)
        await TranslationPhase(translator, _caller(settings), settings).run(state)

        assert len(translator.calls) == 1
        assert state.translation_service_disabled
        assert not state.changes_made
        assert "processing_status" not in document["producers"]["P"]["S"]["V1"]["description"]

    @pytest.mark.asyncio
    async def test_stale_manual_translation_replaced(self, settings, translator):
        settings = settings.model_copy(update={"target_languages": "tr"})
        document = {"producers": {"Vertex": {"m": {"Default": {
            "id": "m", "source": "manual",
            "details": {
                "en": {"title": "New Title"},
                "tr": {"title": "Eski Başlık"},
                "processing_status": {"tr": {"title": "completed", "title_source_hash": simple_hash("Old Title")}},
            },
        }}}}}
        await TranslationPhase(translator, _caller(settings), settings).run(ProcessingState(document=document))

        details = document["producers"]["Vertex"]["m"]["Default"]["details"]
        assert details["tr"]["title"] == "[tr] New Title"
        assert details["processing_status"]["tr"]["title_source_hash"] == simple_hash("New Title")

    @pytest.mark.asyncio
    async def test_poison_pill_isolated(self, settings, translator, monkeypatch):
        settings = settings.model_copy(update={"target_languages": "tr"})
        real_resolve = phases.resolve
        calls = {"n": 0}

        def flaky_resolve(document, address):
            calls["n"] += 1
            if calls["n"] == 1:
                raise KeyError("malformed record")
            return real_resolve(document, address)

        monkeypatch.setattr(phases, "resolve", flaky_resolve)
        document = _many_variants(3)
        state = ProcessingState(document=document)
        await TranslationPhase(translator, _caller(settings), settings).run(state)

        assert state.translations_completed == 2
        assert "tr" not in document["producers"]["P"]["S"]["V0"]["description"]
