# src/tasks/addressing.py — v1
"""Resolve a FieldAddress to the concrete containers inside a document.

Replaces dotted string paths: each FieldKind knows where its value,
its status entry and its source-hash entry live.

    series_description   producers[p][s].series_description[lang]
                         status:  series_description.processing_status[lang]
    variant_description  producers[p][s][v].description[lang]
                         status:  description.processing_status[lang]
    manual_detail        producers[p][s][v].details[lang][field]
                         status:  details.processing_status[lang][field]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from modelsync.core.models import (
    PROCESSING_STATUS_KEY,
    SERIES_DESCRIPTION_KEY,
    FieldAddress,
    FieldKind,
)


class AddressNotFoundError(LookupError):
    """Raised when the producer / series / variant of an address is gone."""


@dataclass
class ResolvedField:
    """Mutable handles on the containers addressed by a FieldAddress.

    ``value_container[value_key]`` holds the text, ``status_container``
    holds ``status_key``, ``hash_key`` and the cumulative failure counter.
    """

    value_container: dict[str, Any]
    value_key: str
    status_container: dict[str, Any]
    status_key: str
    hash_key: str

    @property
    def status(self) -> str | None:
        return self.status_container.get(self.status_key)

    @property
    def stored_hash(self) -> str | None:
        return self.status_container.get(self.hash_key)


def _child(container: Any, key: str, address: FieldAddress) -> dict[str, Any]:
    value = container.get(key) if isinstance(container, dict) else None
    if not isinstance(value, dict):
        raise AddressNotFoundError(f"{key!r} not found for {address.display_path()}")
    return value


def _ensure(container: dict[str, Any], key: str) -> dict[str, Any]:
    value = container.get(key)
    if not isinstance(value, dict):
        value = {}
        container[key] = value
    return value


def locate_series(document: dict[str, Any], producer: str, series: str) -> dict[str, Any]:
    producers = document.get("producers")
    if not isinstance(producers, dict) or not isinstance(producers.get(producer), dict):
        raise AddressNotFoundError(f"producer {producer!r} not found")
    series_obj = producers[producer].get(series)
    if not isinstance(series_obj, dict):
        raise AddressNotFoundError(f"series {producer}/{series} not found")
    return series_obj


def resolve(document: dict[str, Any], address: FieldAddress) -> ResolvedField:
    """Locate (creating missing enrichment containers) the addressed field.

    Raises:
        AddressNotFoundError: If the producer / series / variant or the
            English source container no longer exists.
    """
    series_obj = locate_series(document, address.producer, address.series)

    if address.kind is FieldKind.SERIES_DESCRIPTION:
        desc = _child(series_obj, SERIES_DESCRIPTION_KEY, address)
        status = _ensure(desc, PROCESSING_STATUS_KEY)
        return ResolvedField(
            value_container=desc,
            value_key=address.language,
            status_container=status,
            status_key=address.language,
            hash_key=f"{address.language}_source_hash",
        )

    if address.variant is None:
        raise AddressNotFoundError(f"variant missing in {address.task_key()}")
    variant = _child(series_obj, address.variant, address)

    if address.kind is FieldKind.VARIANT_DESCRIPTION:
        desc = _child(variant, "description", address)
        status = _ensure(desc, PROCESSING_STATUS_KEY)
        return ResolvedField(
            value_container=desc,
            value_key=address.language,
            status_container=status,
            status_key=address.language,
            hash_key=f"{address.language}_source_hash",
        )

    details = _child(variant, "details", address)
    lang_values = _ensure(details, address.language)
    lang_status = _ensure(_ensure(details, PROCESSING_STATUS_KEY), address.language)
    return ResolvedField(
        value_container=lang_values,
        value_key=address.field,
        status_container=lang_status,
        status_key=address.field,
        hash_key=f"{address.field}_source_hash",
    )
