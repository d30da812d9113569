# src/enrichment/phases.py — v1
"""The two task phases run by every enrichment iteration.

  Phase 0: English series-description generation (AI completion)
  Phase 1: translation of every enrichable field, plus EN verification

Each phase processes only the first ``processing_chunk_size`` tasks it
discovers and mutates ``ProcessingState.document`` in place.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from modelsync.clients.errors import ApiError, GenerationValidationError
from modelsync.core.models import (
    CUMULATIVE_FAILURE_KEY,
    PROCESSING_STATUS_KEY,
    SERIES_DESCRIPTION_KEY,
    FieldKind,
    ProcessingStatus,
    TranslationTask,
    VariantSource,
)
from modelsync.logging.context import set_phase_context
from modelsync.retry.caller import RetryingCaller, TaskFailureCounter
from modelsync.tasks.addressing import locate_series, resolve
from modelsync.tasks.finder import find_description_tasks, find_translation_tasks, iter_series, iter_variants

if TYPE_CHECKING:
    from modelsync.clients.base_client import BaseGenerationClient, BaseTranslationClient
    from modelsync.config.settings import Settings

logger = logging.getLogger(__name__)

DESCRIPTION_ACTION = "SeriesDescGeneration"
TRANSLATION_ACTION = "PrimaryTranslation"


@dataclass
class ProcessingState:
    """In-memory working copy of the document for one iteration."""

    document: dict[str, Any]
    changes_made: bool = False
    translation_service_disabled: bool = False
    descriptions_generated: int = 0
    translations_completed: int = 0
    translations_failed: int = 0
    verifications: int = 0


def build_series_prompt(template: str, producer: str, series: str, max_length: int) -> str:
    return (
        template.replace("{PRODUCER_NAME}", producer, 1)
        .replace("{SERIES_NAME}", series, 1)
        .replace("{MAX_LENGTH}", str(max_length))
    )


async def generate_series_description(
    client: BaseGenerationClient,
    producer: str,
    series: str,
    model_id: str,
    prompt_template: str,
    min_length: int,
    max_length: int,
) -> str:
    """Generate and length-check one English series description.

    Raises:
        GenerationValidationError: If the text falls outside the bounds.
    """
    prompt = build_series_prompt(prompt_template, producer, series, max_length)
    description = await client.generate(prompt, model_id)
    if min_length <= len(description) <= max_length:
        logger.info("Generated valid EN series description (len %d)", len(description))
        return description
    logger.warning(
        "Generated EN description (len %d) outside %d-%d, discarding: %r",
        len(description), min_length, max_length, description[:100],
    )
    raise GenerationValidationError(
        f"Generated description length ({len(description)}) is outside the target range."
    )


def online_model_ids(document: dict[str, Any]) -> list[str]:
    """Ids of all online variants, candidates for description generation."""
    ids: list[str] = []
    for _, _, series_obj in iter_series(document):
        for _, variant in iter_variants(series_obj):
            if variant.get("source") == VariantSource.OPENROUTER.value and variant.get("id"):
                ids.append(variant["id"])
    return ids


class DescriptionPhase:
    """Phase 0: fill missing ``series_description.en`` with generated text."""

    def __init__(
        self,
        client: BaseGenerationClient,
        caller: RetryingCaller,
        settings: Settings,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._caller = caller
        self._settings = settings
        self._rng = rng or random.Random()

    async def run(self, state: ProcessingState) -> None:
        set_phase_context("description_generation")
        chunk = find_description_tasks(state.document)[: self._settings.processing_chunk_size]
        if not chunk:
            logger.debug("Phase 0: no series need a description")
            return

        candidates = online_model_ids(state.document)
        failures = TaskFailureCounter()
        limit = self._settings.max_api_failures_per_model_in_task

        for task in chunk:
            generated = False
            for _ in range(self._settings.series_desc_retries):
                available = [
                    model_id for model_id in candidates
                    if not failures.exhausted(model_id, task.series_key, DESCRIPTION_ACTION, limit)
                ]
                if not available:
                    logger.warning("No models left for EN description of %s", task.series_key)
                    break
                model_id = self._rng.choice(available)

                outcome = await self._caller.call(
                    generate_series_description,
                    (
                        self._client, task.producer, task.series, model_id,
                        self._settings.series_desc_prompt,
                        self._settings.series_desc_min_length,
                        self._settings.series_desc_max_length,
                    ),
                    resource_id=model_id,
                    task_id=task.series_key,
                    action=DESCRIPTION_ACTION,
                    failures=failures,
                )
                if outcome.success and outcome.result:
                    series_obj = locate_series(state.document, task.producer, task.series)
                    desc = series_obj.setdefault(SERIES_DESCRIPTION_KEY, {})
                    desc["en"] = outcome.result
                    desc.setdefault(PROCESSING_STATUS_KEY, {})["en"] = ProcessingStatus.GENERATED.value
                    state.changes_made = True
                    state.descriptions_generated += 1
                    generated = True
                    logger.info("Generated EN description for %s with %s", task.series_key, model_id)
                    break

            if not generated:
                logger.error("Failed to generate EN series description for %s", task.series_key)


class TranslationPhase:
    """Phase 1: translate pending fields and verify generated EN text."""

    def __init__(
        self,
        client: BaseTranslationClient,
        caller: RetryingCaller,
        settings: Settings,
    ) -> None:
        self._client = client
        self._caller = caller
        self._settings = settings

    async def run(self, state: ProcessingState) -> None:
        set_phase_context("translation")
        tasks = find_translation_tasks(state.document, self._settings.target_languages_list)
        chunk = tasks[: self._settings.processing_chunk_size]
        logger.debug("Phase 1: %d tasks found, processing %d", len(tasks), len(chunk))

        for task in chunk:
            task_id = task.address.task_key()
            if state.translation_service_disabled:
                logger.debug("Skipping %s: translation API disabled for this run", task_id)
                continue
            set_phase_context("translation", task=task_id)
            try:
                await self._process(state, task, task_id)
            except Exception:
                logger.exception("Unrecoverable error processing task %s, skipping", task_id)
        set_phase_context("translation")

    async def _process(self, state: ProcessingState, task: TranslationTask, task_id: str) -> None:
        field = resolve(state.document, task.address)

        # A changed English source invalidates the old manual translation.
        if task.address.kind is FieldKind.MANUAL_DETAIL and field.stored_hash != task.source_hash:
            field.value_container.pop(field.value_key, None)

        if task.is_verification:
            if field.status == ProcessingStatus.GENERATED.value:
                field.status_container[field.status_key] = ProcessingStatus.COMPLETED.value
                state.changes_made = True
                state.verifications += 1
            return

        status = field.status_container
        outcome = await self._caller.call(
            self._client.translate,
            (task.english_text, task.language),
            resource_id=self._client.resource_id,
            task_id=task_id,
            action=TRANSLATION_ACTION,
            failures=TaskFailureCounter(),
        )

        if outcome.success and outcome.result:
            field.value_container[field.value_key] = outcome.result
            status[field.status_key] = ProcessingStatus.COMPLETED.value
            status[field.hash_key] = task.source_hash
            status[CUMULATIVE_FAILURE_KEY] = 0
            state.changes_made = True
            state.translations_completed += 1
        else:
            error = outcome.error
            if isinstance(error, ApiError) and error.is_service_disabled:
                logger.warning("Translation API is disabled (403), halting translation tasks")
                state.translation_service_disabled = True
                return
            logger.error(
                "Translation task %s failed (%s): %s",
                task_id, outcome.error_kind.value if outcome.error_kind else "unknown",
                error or "unknown error",
            )
            previous = status.get(field.status_key)
            status[field.status_key] = (
                ProcessingStatus.FAILED.value
                if previous == ProcessingStatus.TRANSLATION_RETRY.value
                else ProcessingStatus.TRANSLATION_RETRY.value
            )
            status[CUMULATIVE_FAILURE_KEY] = int(status.get(CUMULATIVE_FAILURE_KEY) or 0) + 1
            state.changes_made = True
            state.translations_failed += 1

        if int(status.get(CUMULATIVE_FAILURE_KEY) or 0) >= self._settings.max_cumulative_failures_per_item:
            logger.warning("Task %s reached max cumulative failures, marking FAILED", task_id)
            status[field.status_key] = ProcessingStatus.FAILED.value
            status[field.hash_key] = task.source_hash
            state.changes_made = True
