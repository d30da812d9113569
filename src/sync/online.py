# src/sync/online.py — v1
"""Filter and classify upstream catalog records into the producers tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from modelsync.core.models import VariantSource
from modelsync.sync.parser import PRODUCER_MAP, SeriesVariant, extract_series_variant

if TYPE_CHECKING:
    from modelsync.config.settings import Settings

logger = logging.getLogger(__name__)

NameParser = Callable[[str, str], SeriesVariant]


class CatalogRecord(BaseModel):
    """One entry of the catalog ``data`` array (unknown fields ignored)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    pricing: dict[str, Any]
    architecture: dict[str, Any]
    description: str | None = None
    context_length: int | None = None
    supported_parameters: list[str] | None = None


@dataclass(frozen=True)
class PricingLimits:
    text: float = 0.000005
    image: float = 0.0001
    web_search: float = 0.02
    tier_text_premium: float = 0.0000007
    tier_image_premium: float = 0.00001

    @classmethod
    def from_settings(cls, settings: Settings) -> PricingLimits:
        return cls(
            text=settings.text_cost_limit,
            image=settings.image_cost_limit,
            web_search=settings.web_search_cost_limit,
            tier_text_premium=settings.tier_text_premium,
            tier_image_premium=settings.tier_image_premium,
        )


@dataclass
class FilterStats:
    kept: int = 0
    invalid: int = 0
    blacklisted: int = 0
    free: int = 0
    provider: int = 0
    cost: int = 0
    unnamed: int = 0


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def is_too_expensive(pricing: dict[str, Any], limits: PricingLimits) -> bool:
    """True if any price component exceeds its category limit."""
    for key, value in pricing.items():
        cost = _number(value)
        lower = key.lower()
        if "image" in lower:
            limit = limits.image
        elif "web_search" in lower or "request" in lower:
            limit = limits.web_search
        else:
            limit = limits.text
        if cost > limit:
            return True
    return False


def build_variant(record: CatalogRecord, limits: PricingLimits) -> dict[str, Any]:
    """Capability flags and tier for one kept record."""
    pricing = record.pricing
    inputs = record.architecture.get("input_modalities") or []
    outputs = record.architecture.get("output_modalities") or []
    params = record.supported_parameters or []

    image_price = _number(pricing.get("image"))
    tier = "free"
    if image_price >= limits.tier_image_premium or _number(pricing.get("completion")) >= limits.tier_text_premium:
        tier = "premium"

    return {
        "id": record.id,
        "source": VariantSource.OPENROUTER.value,
        "tier": tier,
        "description": {"en": record.description or record.name},
        "context": record.context_length or 0,
        "modalities": {
            "image": "image" in inputs or "vision" in inputs or image_price > 0,
            "audio": "audio" in inputs,
            "file": "file" in inputs,
        },
        "outputs": {"image": "image" in outputs},
        "reasoning": any(p in params for p in ("tools", "tool_choice", "reasoning", "include_reasoning")),
        "webSearch": "web_search_options" in params or _number(pricing.get("web_search")) > 0,
    }


def build_grouped_online_models(
    records: list[dict[str, Any]],
    blacklisted_ids: set[str],
    limits: PricingLimits | None = None,
    parser: NameParser = extract_series_variant,
) -> dict[str, Any]:
    """Producers tree (display name → series → variant) of catalog models.

    Drops malformed, blacklisted, ``:free``, non-whitelisted and
    too-expensive records, and records whose name cannot be split.
    """
    limits = limits or PricingLimits()
    grouped: dict[str, Any] = {}
    stats = FilterStats()

    for raw in records:
        try:
            record = CatalogRecord.model_validate(raw)
        except ValidationError:
            stats.invalid += 1
            continue
        if not record.id or not record.name:
            stats.invalid += 1
            continue
        if record.id in blacklisted_ids:
            stats.blacklisted += 1
            continue
        if record.id.endswith(":free"):
            stats.free += 1
            continue

        provider_id = record.id.split("/", 1)[0]
        display_name = PRODUCER_MAP.get(provider_id)
        if display_name is None:
            stats.provider += 1
            continue
        if is_too_expensive(record.pricing, limits):
            stats.cost += 1
            continue

        names = parser(record.name, provider_id)
        if not names.series or not names.variant:
            stats.unnamed += 1
            continue

        grouped.setdefault(display_name, {}).setdefault(names.series, {})[names.variant] = (
            build_variant(record, limits)
        )
        stats.kept += 1

    logger.info(
        "Online models processed. Kept: %d. Filtered: provider=%d cost=%d free=%d "
        "invalid=%d blacklisted=%d unnamed=%d",
        stats.kept, stats.provider, stats.cost, stats.free,
        stats.invalid, stats.blacklisted, stats.unnamed,
    )
    return grouped
