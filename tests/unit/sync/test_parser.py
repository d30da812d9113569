# tests/unit/sync/test_parser.py — v1
"""Tests for sync/parser.py — series/variant names per provider."""

from __future__ import annotations

import pytest

from modelsync.sync.parser import (
    SeriesVariant,
    clean_name_for_variant,
    extract_series_variant,
    strip_left_of_colon,
)


class TestHelpers:
    @pytest.mark.parametrize("raw,expected", [
        ("DeepSeek R1 (free)", "DeepSeek R1"),
        ("Gemini 2.5 Flash (preview)", "Gemini 2.5 Flash"),
        ("Claude 3.7 Sonnet (thinking)", "Claude 3.7 Sonnet"),
        ("Plain Name", "Plain Name"),
    ])
    def test_clean_name(self, raw, expected):
        assert clean_name_for_variant(raw) == expected

    def test_strip_left_of_colon(self):
        assert strip_left_of_colon("openai: gpt-4") == "gpt-4"
        assert strip_left_of_colon(" gpt-4 ") == "gpt-4"


class TestExtractSeriesVariant:
    @pytest.mark.parametrize("raw,provider,expected", [
        ("OpenAI: GPT-4o", "openai", SeriesVariant("ChatGPT", "GPT-4o")),
        ("OpenAI: Codex Mini", "openai", SeriesVariant("Codex", "Mini")),
        ("Anthropic: Claude 3.5 Sonnet", "anthropic", SeriesVariant("Claude", "3.5 Sonnet")),
        ("Google: Gemini 2.5 Flash (preview)", "google", SeriesVariant("Gemini", "2.5 Flash")),
        ("Mistral: Mistral Large 2411", "mistralai", SeriesVariant("Mistral", "Large")),
        ("Meta: Llama 3.1 70B Instruct", "meta-llama", SeriesVariant("Llama", "3.1 70B Instruct")),
    ])
    def test_known_providers(self, raw, provider, expected):
        assert extract_series_variant(raw, provider) == expected

    def test_unknown_provider(self):
        assert extract_series_variant("Foo 1", "foo-labs") == SeriesVariant("Unknown Provider", "Foo 1")

    def test_variant_never_empty(self):
        result = extract_series_variant("Claude", "anthropic")
        assert result.series == "Claude"
        assert result.variant == "Claude"
