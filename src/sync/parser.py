# src/sync/parser.py — v1
"""Derive (series, variant) names from raw catalog model names.

Naming conventions differ per provider, so each allowed provider has a
rule: how to pick the series, which leading prefix to strip from the
cleaned name, and optional post-processing of the variant.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

# Provider id -> display name. Also the whitelist of processed providers.
PRODUCER_MAP: dict[str, str] = {
    "google": "Google",
    "meta-llama": "Meta",
    "openai": "OpenAI",
    "qwen": "Qwen",
    "deepseek": "DeepSeek",
    "microsoft": "Microsoft",
    "mistralai": "Mistral AI",
    "x-ai": "xAI",
    "anthropic": "Anthropic",
    "nousresearch": "NousResearch",
    "cohere": "Cohere",
    "amazon": "Amazon",
    "perplexity": "Perplexity",
    "arcee-ai": "Arcee AI",
}

_PAREN_METADATA = re.compile(
    r"\s*\((?:free|thinking|preview|beta|alpha|instruct|chat|v\d+\.\d+|series|v\d{4}|-\d{4}).*?\)",
    re.IGNORECASE,
)
_SEP = r"\s*[:\-\s]*"


@dataclass(frozen=True)
class SeriesVariant:
    series: str
    variant: str


def clean_name_for_variant(name: str) -> str:
    """Drop parenthesised metadata such as ``(free)`` or ``(beta)``."""
    return _PAREN_METADATA.sub("", name).strip()


def strip_left_of_colon(value: str) -> str:
    """``"openai: gpt-4"`` -> ``"gpt-4"``."""
    if ":" in value:
        return value.split(":", 1)[1].strip()
    return value.strip()


def _fixed(series: str) -> Callable[[str], str]:
    return lambda _name: series


def _first_match(*pairs: tuple[str, str], default: str = "") -> Callable[[str], str]:
    def pick(name: str) -> str:
        for pattern, series in pairs:
            if re.search(pattern, name, re.IGNORECASE):
                return series
        return default
    return pick


def _perplexity_series(name: str) -> str:
    if re.search("r1", name, re.IGNORECASE) and not re.search("sonar", name, re.IGNORECASE):
        return "R1 Series"
    return "Sonar"


@dataclass(frozen=True)
class ProviderRule:
    series: Callable[[str], str]
    prefix: str | Callable[[str, str], str]
    strip_colon: bool = True
    strip_series_prefix: bool = False
    trailing: str | None = None

    def prefix_pattern(self, display_name: str, series: str) -> str:
        if callable(self.prefix):
            return self.prefix(display_name, series)
        return self.prefix


RULES: dict[str, ProviderRule] = {
    "openai": ProviderRule(
        _first_match(("codex", "Codex"), default="ChatGPT"), rf"^(OpenAI{_SEP})?",
    ),
    "meta-llama": ProviderRule(
        _fixed("Llama"), rf"^(Meta-Llama|Meta Llama|Llama)\s*[\d.]*{_SEP}",
    ),
    "microsoft": ProviderRule(
        _first_match((r"phi", "Phi"), ("wizardlm", "WizardLM")),
        lambda display, _series: rf"^{re.escape(display)}{_SEP}",
        strip_series_prefix=True,
    ),
    "amazon": ProviderRule(_fixed("Nova"), rf"^(Amazon{_SEP}|Nova{_SEP})"),
    "perplexity": ProviderRule(
        _perplexity_series,
        lambda display, series: rf"^{re.escape(display)}{_SEP}|{re.escape(series)}{_SEP}",
    ),
    "deepseek": ProviderRule(_fixed("DeepSeek"), rf"^(DeepSeek{_SEP})?"),
    "qwen": ProviderRule(_fixed("Qwen"), rf"^(Qwen{_SEP})?"),
    "nousresearch": ProviderRule(
        _fixed("Hermes"), rf"^(NousResearch{_SEP}|Hermes{_SEP}|DeepHermes{_SEP})",
    ),
    "mistralai": ProviderRule(
        _first_match(
            ("codestral", "Codestral"), ("mixtral", "Mixtral"), ("ministral", "Ministral"),
            default="Mistral",
        ),
        rf"^(Mistral AI{_SEP}|Mistral{_SEP}|Codestral{_SEP}|Mixtral{_SEP}|Ministral{_SEP})",
        trailing=r"\s*(?:v\d\.\d+|\d{4})$",
    ),
    "anthropic": ProviderRule(_fixed("Claude"), rf"^(Anthropic{_SEP}|Claude{_SEP})"),
    "cohere": ProviderRule(_fixed("Command"), rf"^(Cohere{_SEP}|Command{_SEP})"),
    "google": ProviderRule(
        _first_match(("gemini", "Gemini"), ("gemma", "Gemma")),
        rf"^(Google{_SEP}|Gemini{_SEP}|Gemma{_SEP})",
    ),
    "x-ai": ProviderRule(_fixed("Grok"), rf"^(xAI{_SEP}|Grok{_SEP})"),
    "arcee-ai": ProviderRule(_fixed("Arcee AI"), rf"^Arcee AI{_SEP}", strip_colon=False),
}


def extract_series_variant(raw_name: str, provider_id: str) -> SeriesVariant:
    """Split a catalog display name into series and variant.

    An empty ``series`` means the name could not be classified.
    """
    display_name = PRODUCER_MAP.get(provider_id)
    cleaned = clean_name_for_variant(raw_name)

    if display_name is None:
        logger.error("Provider id %r is not in the allowed provider list", provider_id)
        return SeriesVariant(series="Unknown Provider", variant=raw_name)

    rule = RULES.get(provider_id)
    if rule is None:
        logger.warning("Unhandled provider rule for %r, using defaults", provider_id)
        series, variant = display_name, cleaned
    else:
        series = rule.series(cleaned)
        pattern = rule.prefix_pattern(display_name, series)
        variant = re.sub(pattern, "", cleaned, count=1, flags=re.IGNORECASE).strip()
        if rule.strip_colon:
            variant = strip_left_of_colon(variant)
        if rule.strip_series_prefix and series:
            variant = re.sub(rf"^{re.escape(series)}\s*", "", variant, count=1, flags=re.IGNORECASE).strip()
        if rule.trailing:
            variant = re.sub(rule.trailing, "", variant, flags=re.IGNORECASE).strip()

    variant = variant or cleaned or raw_name
    if series and series != display_name and variant.lower().startswith(series.lower() + " "):
        variant = variant[len(series):].strip()
    if not variant or variant.lower() in (display_name.lower(), series.lower()):
        variant = cleaned or raw_name

    return SeriesVariant(series=series, variant=variant)
