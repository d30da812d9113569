# src/tasks/finder.py — v1
"""Scan the catalog document for pending enrichment work.

Both finders are pure full scans, O(size of document): they read the
document without inserting missing containers, and report tasks in
producer → series → variant insertion order before the priority sort.
"""

from __future__ import annotations

from typing import Any, Iterator

from modelsync.core.hashing import simple_hash
from modelsync.core.models import (
    DEFAULT_VARIANT_NAME,
    MANUAL_DETAIL_FIELDS,
    PROCESSING_STATUS_KEY,
    RESERVED_SERIES_KEYS,
    SERIES_DESCRIPTION_KEY,
    SETTLED_STATUSES,
    DescriptionTask,
    FieldAddress,
    FieldKind,
    ProcessingStatus,
    TranslationTask,
    VariantSource,
)

PRIORITY_FRESH = 1
PRIORITY_RETRY = 2
PRIORITY_VERIFY = 3
PRIORITY_OTHER = 99


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def iter_series(document: dict[str, Any]) -> Iterator[tuple[str, str, dict[str, Any]]]:
    """Yield (producer, series, series_obj) for every well-formed series."""
    for p_name, series_map in _mapping(document.get("producers")).items():
        for s_name, series_obj in _mapping(series_map).items():
            if isinstance(series_obj, dict):
                yield p_name, s_name, series_obj


def iter_variants(series_obj: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield (variant_name, variant) skipping reserved keys and junk values."""
    for v_name, variant in series_obj.items():
        if v_name in RESERVED_SERIES_KEYS or not isinstance(variant, dict):
            continue
        yield v_name, variant


def is_manual_container(series_obj: dict[str, Any]) -> bool:
    names = [k for k in series_obj if k not in RESERVED_SERIES_KEYS]
    return names == [DEFAULT_VARIANT_NAME]


def find_description_tasks(document: dict[str, Any]) -> list[DescriptionTask]:
    """Series lacking an English description (manual containers excluded)."""
    tasks: list[DescriptionTask] = []
    for p_name, s_name, series_obj in iter_series(document):
        if is_manual_container(series_obj):
            continue
        if not _mapping(series_obj.get(SERIES_DESCRIPTION_KEY)).get("en"):
            tasks.append(DescriptionTask(producer=p_name, series=s_name))
    return tasks


def task_priority(task: TranslationTask) -> int:
    """Lower runs first: fresh/stale, then retries, then EN verification.

    Never-attempted and stale-after-success both map to PRIORITY_FRESH.
    """
    status = task.current_status
    if task.is_stale or not status or status == ProcessingStatus.NOT_PROCESSED.value:
        return PRIORITY_FRESH
    if status == ProcessingStatus.TRANSLATION_RETRY.value:
        return PRIORITY_RETRY
    if status == ProcessingStatus.GENERATED.value:
        return PRIORITY_VERIFY
    return PRIORITY_OTHER


def _language_tasks(
    kind: FieldKind,
    p_name: str,
    s_name: str,
    v_name: str | None,
    field: str,
    english_text: str,
    status_for_lang: Any,
    target_languages: list[str],
) -> list[TranslationTask]:
    """Tasks for one English text across languages.

    ``status_for_lang(lang)`` returns the status mapping holding this
    field's ``status`` / ``hash`` entries for that language.
    """
    tasks: list[TranslationTask] = []
    source_hash = simple_hash(english_text)
    for lang in target_languages:
        status_obj, status_key, hash_key = status_for_lang(lang)
        current = status_obj.get(status_key)
        stored_hash = status_obj.get(hash_key)
        is_stale = stored_hash != source_hash
        if current not in SETTLED_STATUSES or is_stale:
            tasks.append(
                TranslationTask(
                    address=FieldAddress(
                        kind=kind, producer=p_name, series=s_name,
                        variant=v_name, language=lang, field=field,
                    ),
                    english_text=english_text,
                    source_hash=source_hash,
                    current_status=current,
                    is_stale=is_stale,
                )
            )
    return tasks


def find_translation_tasks(
    document: dict[str, Any], target_languages: list[str]
) -> list[TranslationTask]:
    """All field/language pairs needing translation, plus EN verifications.

    Returns:
        Tasks stably sorted by ``task_priority``.
    """
    tasks: list[TranslationTask] = []

    for p_name, s_name, series_obj in iter_series(document):
        # A) series description
        series_desc = _mapping(series_obj.get(SERIES_DESCRIPTION_KEY))
        english = series_desc.get("en")
        if english and isinstance(english, str):
            status = _mapping(series_desc.get(PROCESSING_STATUS_KEY))
            source_hash = simple_hash(english)
            if status.get("en") == ProcessingStatus.GENERATED.value:
                tasks.append(
                    TranslationTask(
                        address=FieldAddress(
                            kind=FieldKind.SERIES_DESCRIPTION,
                            producer=p_name, series=s_name, language="en",
                        ),
                        english_text=english,
                        source_hash=source_hash,
                        current_status=status.get("en"),
                    )
                )
            tasks.extend(
                _language_tasks(
                    FieldKind.SERIES_DESCRIPTION, p_name, s_name, None, "description",
                    english,
                    lambda lang, st=status: (st, lang, f"{lang}_source_hash"),
                    target_languages,
                )
            )

        # B) variants
        for v_name, variant in iter_variants(series_obj):
            details = _mapping(variant.get("details"))
            if variant.get("source") == VariantSource.MANUAL.value and details.get("en"):
                english_fields = _mapping(details.get("en"))
                status_root = _mapping(details.get(PROCESSING_STATUS_KEY))
                for lang in target_languages:
                    lang_status = _mapping(status_root.get(lang))
                    for field in MANUAL_DETAIL_FIELDS:
                        text = english_fields.get(field)
                        if not text or not isinstance(text, str):
                            continue
                        tasks.extend(
                            _language_tasks(
                                FieldKind.MANUAL_DETAIL, p_name, s_name, v_name, field,
                                text,
                                lambda _lang, st=lang_status, f=field: (st, f, f"{f}_source_hash"),
                                [lang],
                            )
                        )
                continue

            description = _mapping(variant.get("description"))
            english = description.get("en")
            if english and isinstance(english, str) and variant.get("source") != VariantSource.MANUAL.value:
                status = _mapping(description.get(PROCESSING_STATUS_KEY))
                tasks.extend(
                    _language_tasks(
                        FieldKind.VARIANT_DESCRIPTION, p_name, s_name, v_name, "description",
                        english,
                        lambda lang, st=status: (st, lang, f"{lang}_source_hash"),
                        target_languages,
                    )
                )

    # sorted() is stable: equal priorities keep discovery order
    return sorted(tasks, key=task_priority)
