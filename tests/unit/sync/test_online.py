# tests/unit/sync/test_online.py — v1
"""Tests for sync/online.py — catalog filtering and variant building."""

from __future__ import annotations

from modelsync.sync.online import (
    CatalogRecord,
    PricingLimits,
    build_grouped_online_models,
    build_variant,
    is_too_expensive,
)


def _record(model_id: str = "openai/gpt-4o", name: str = "OpenAI: GPT-4o", **overrides) -> dict:
    record = {
        "id": model_id,
        "name": name,
        "description": "Omni model.",
        "context_length": 128000,
        "pricing": {"prompt": "0.0000001", "completion": "0.0000004"},
        "architecture": {"input_modalities": ["text", "image"], "output_modalities": ["text"]},
        "supported_parameters": ["tools", "temperature"],
    }
    record.update(overrides)
    return record


class TestPricing:
    def test_cheap_text(self):
        assert not is_too_expensive({"prompt": "0.000001", "completion": "0.000002"}, PricingLimits())

    def test_expensive_image(self):
        assert is_too_expensive({"prompt": "0", "image": "0.0002"}, PricingLimits())

    def test_web_search_own_limit(self):
        assert not is_too_expensive({"web_search": "0.01"}, PricingLimits())
        assert is_too_expensive({"web_search": "0.03"}, PricingLimits())

    def test_unparsable_price_is_free(self):
        assert not is_too_expensive({"prompt": "n/a"}, PricingLimits())


class TestBuildVariant:
    def test_capabilities(self):
        variant = build_variant(CatalogRecord.model_validate(_record()), PricingLimits())
        assert variant["id"] == "openai/gpt-4o"
        assert variant["source"] == "openrouter"
        assert variant["tier"] == "free"
        assert variant["description"] == {"en": "Omni model."}
        assert variant["context"] == 128000
        assert variant["modalities"] == {"image": True, "audio": False, "file": False}
        assert variant["reasoning"] is True
        assert variant["webSearch"] is False

    def test_premium_tier(self):
        record = _record(pricing={"prompt": "0.000001", "completion": "0.000001"})
        assert build_variant(CatalogRecord.model_validate(record), PricingLimits())["tier"] == "premium"

    def test_description_falls_back_to_name(self):
        record = CatalogRecord.model_validate(_record(description=None))
        assert build_variant(record, PricingLimits())["description"] == {"en": "OpenAI: GPT-4o"}


class TestGroupedOnlineModels:
    def test_filters(self):
        records = [
            _record(),
            _record("openai/gpt-4o:free", "OpenAI: GPT-4o (free)"),
            _record("openai/o1", "OpenAI: o1"),
            _record("openai/gpt-4-pricey", "OpenAI: GPT-4 Pricey", pricing={"completion": "0.00006"}),
            _record("foo/bar", "Foo: Bar"),
            {"id": "openai/broken", "name": "Broken"},
        ]
        grouped = build_grouped_online_models(records, blacklisted_ids={"openai/o1"})
        assert grouped == {"OpenAI": {"ChatGPT": {"GPT-4o": grouped["OpenAI"]["ChatGPT"]["GPT-4o"]}}}
        assert grouped["OpenAI"]["ChatGPT"]["GPT-4o"]["id"] == "openai/gpt-4o"

    def test_custom_parser(self):
        from modelsync.sync.parser import SeriesVariant

        grouped = build_grouped_online_models(
            [_record()], set(), parser=lambda name, provider: SeriesVariant("S", "V"),
        )
        assert "V" in grouped["OpenAI"]["S"]

    def test_unnamed_dropped(self):
        from modelsync.sync.parser import SeriesVariant

        grouped = build_grouped_online_models(
            [_record()], set(), parser=lambda name, provider: SeriesVariant("", "V"),
        )
        assert grouped == {}
