# src/merge/reconciler.py — v1
"""Reconcile freshly ingested producers with the previously enriched ones.

Two steps, both pure and non-mutating:

1. prune: drop producers / series / variants of the existing data that the
   fresh data no longer contains, then drop emptied series and producers.
2. merge: overlay the pruned existing data onto the fresh data. Fresh
   structure and catalog fields win; enrichment (translations,
   processing_status, series descriptions, keys only the existing side
   has) is carried forward.

Enrichment containers (``description``, ``details``, ``series_description``)
follow a split rule: their ``en`` subtree is catalog/curator data and the
fresh value wins, every other key (language translations,
``processing_status``) is enrichment and the existing value wins.
``processing_status`` keeps the existing value wherever it appears.
"""

from __future__ import annotations

import logging
from typing import Any

from modelsync.core.models import PROCESSING_STATUS_KEY, RESERVED_SERIES_KEYS, UNSAFE_KEYS

logger = logging.getLogger(__name__)

ENRICHMENT_CONTAINERS = frozenset({"description", "details", "series_description"})

Producers = dict[str, Any]


def _is_mapping(value: Any) -> bool:
    return isinstance(value, dict)


def _clean_copy(value: Any) -> Any:
    """Deep copy of JSON data with unsafe keys removed at every level."""
    if isinstance(value, dict):
        return {k: _clean_copy(v) for k, v in value.items() if k not in UNSAFE_KEYS}
    if isinstance(value, list):
        return [_clean_copy(v) for v in value]
    return value


def real_variant_names(series: dict[str, Any]) -> list[str]:
    """Variant names of a series, excluding reserved keys."""
    return [k for k in series if k not in RESERVED_SERIES_KEYS]


def prune_stale(existing: Any, fresh: Any) -> Producers:
    """Return a copy of ``existing`` restricted to what ``fresh`` still has."""
    if not _is_mapping(existing):
        return {}
    if not _is_mapping(fresh):
        fresh = {}

    pruned: Producers = {}
    removed = 0

    for p_name, series_map in existing.items():
        if p_name in UNSAFE_KEYS:
            continue
        fresh_series_map = fresh.get(p_name)
        if not _is_mapping(series_map) or not _is_mapping(fresh_series_map):
            removed += 1
            continue

        kept_series: dict[str, Any] = {}
        for s_name, series in series_map.items():
            if s_name in UNSAFE_KEYS:
                continue
            fresh_series = fresh_series_map.get(s_name)
            if not _is_mapping(series) or not _is_mapping(fresh_series):
                removed += 1
                continue

            kept: dict[str, Any] = {}
            for v_name, variant in series.items():
                if v_name in UNSAFE_KEYS:
                    continue
                if v_name in RESERVED_SERIES_KEYS or fresh_series.get(v_name):
                    kept[v_name] = _clean_copy(variant)
                else:
                    removed += 1

            if not real_variant_names(kept):
                removed += 1
                continue
            kept_series[s_name] = kept

        if not kept_series:
            removed += 1
            continue
        pruned[p_name] = kept_series

    if removed:
        logger.info("Pruning complete. Removed %d stale entries.", removed)
    return pruned


def _overlay(
    fresh: dict[str, Any],
    existing: dict[str, Any],
    existing_wins: bool,
    in_container: bool,
) -> dict[str, Any]:
    out = {k: _clean_copy(v) for k, v in fresh.items() if k not in UNSAFE_KEYS}

    for key, existing_value in existing.items():
        if key in UNSAFE_KEYS:
            continue
        if key not in out:
            out[key] = _clean_copy(existing_value)
            continue

        child_existing_wins = (
            existing_wins
            or key == PROCESSING_STATUS_KEY
            or (in_container and key != "en")
        )
        fresh_value = out[key]
        if _is_mapping(fresh_value) and _is_mapping(existing_value):
            out[key] = _overlay(
                fresh_value,
                existing_value,
                existing_wins=child_existing_wins,
                in_container=key in ENRICHMENT_CONTAINERS,
            )
        elif child_existing_wins:
            out[key] = _clean_copy(existing_value)

    return out


def merge_enriched(existing: Any, fresh: Any) -> Producers:
    """Overlay ``existing`` onto ``fresh`` preserving enrichment subtrees."""
    if not _is_mapping(fresh):
        fresh = {}
    if not _is_mapping(existing):
        existing = {}
    return _overlay(fresh, existing, existing_wins=False, in_container=False)


def reconcile(existing: Any, fresh: Any) -> Producers:
    """Prune ``existing`` against ``fresh`` and merge the result onto ``fresh``.

    Args:
        existing: ``producers`` of the stored (enriched) document.
        fresh: ``producers`` built from the catalog and manual records.

    Returns:
        A new producers mapping; neither input is modified.
    """
    return merge_enriched(prune_stale(existing, fresh), fresh)


def merge_deep(target: Any, source: Any) -> dict[str, Any]:
    """Generic deep merge where ``source`` wins; returns a new mapping.

    Nested mappings merge recursively, everything else is replaced. Unsafe
    keys from either side are skipped.
    """
    output = _clean_copy(target) if _is_mapping(target) else {}
    if not _is_mapping(source):
        return output
    for key, value in source.items():
        if key in UNSAFE_KEYS:
            continue
        if _is_mapping(value) and _is_mapping(output.get(key)):
            output[key] = merge_deep(output[key], value)
        else:
            output[key] = _clean_copy(value)
    return output
