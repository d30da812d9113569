# src/enrichment/orchestrator.py — v1
"""Enrichment orchestrator — one scheduled invocation.

    cleanup lock held?  -> yield (locked_out)
    acquire supervisor_lock (failed -> lock_failed)
    attempt 1..max_conflict_retries:
        read document + version
        Phase 0: series descriptions
        Phase 1: translations
        no changes          -> no_changes
        version moved       -> back off, re-read (or conflict_aborted)
        version unchanged   -> commit
    release supervisor_lock (always)
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from modelsync.core.models import EnrichmentRunResult
from modelsync.enrichment.phases import DescriptionPhase, ProcessingState, TranslationPhase
from modelsync.locking.keyed_lock import CLEANUP_LOCK, SUPERVISOR_LOCK, KeyedLock
from modelsync.logging.context import new_op_id, set_operation_context, set_phase_context
from modelsync.retry.caller import RetryingCaller, RetryPolicy

if TYPE_CHECKING:
    from modelsync.clients.base_client import BaseGenerationClient, BaseTranslationClient
    from modelsync.config.settings import Settings
    from modelsync.storage.versioned_store import VersionedStore

logger = logging.getLogger(__name__)


class EnrichmentOrchestrator:
    """Drive one enrichment cycle with optimistic version checking.

    Args:
        store: Versioned document store.
        locks: KeyedLock over the lock store.
        generator: AI completion client for series descriptions.
        translator: Translation client.
        settings: Application settings.
        caller: Optional pre-built RetryingCaller (defaults to one over
            ``locks``' store built from ``settings``).
        sleep: Awaitable sleep used for conflict backoff.
    """

    def __init__(
        self,
        store: VersionedStore,
        locks: KeyedLock,
        generator: BaseGenerationClient,
        translator: BaseTranslationClient,
        settings: Settings,
        caller: RetryingCaller | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._locks = locks
        self._settings = settings
        self._sleep = sleep
        caller = caller or RetryingCaller(
            locks.store, RetryPolicy.from_settings(settings), sleep=sleep
        )
        self._description_phase = DescriptionPhase(generator, caller, settings, rng=rng)
        self._translation_phase = TranslationPhase(translator, caller, settings)

    async def run(self, op_id: str | None = None) -> EnrichmentRunResult:
        """Execute one invocation; never leaves the supervisor lock behind."""
        op_id = op_id or new_op_id("supervisor")
        set_operation_context(op_id, "supervisor")
        logger.info("Supervisor run start")

        cleanup_holder = await self._locks.holder(CLEANUP_LOCK)
        if cleanup_holder:
            logger.warning("Cleanup running (lock held by %s), supervisor yielding", cleanup_holder)
            return EnrichmentRunResult(op_id=op_id, outcome="locked_out")

        if not await self._locks.acquire(SUPERVISOR_LOCK, op_id, self._settings.lock_ttl_s):
            logger.info("Could not acquire %s, terminating this run", SUPERVISOR_LOCK)
            return EnrichmentRunResult(op_id=op_id, outcome="lock_failed")

        try:
            return await self._processing_loop(op_id)
        except Exception:
            logger.exception("Fatal error in enrichment loop")
            raise
        finally:
            await self._locks.release(SUPERVISOR_LOCK)
            set_phase_context(None)
            logger.debug("Supervisor run concluded")

    async def _processing_loop(self, op_id: str) -> EnrichmentRunResult:
        max_attempts = self._settings.max_conflict_retries
        result = EnrichmentRunResult(op_id=op_id, outcome="conflict_aborted")

        for attempt in range(1, max_attempts + 1):
            set_phase_context("read")
            logger.info("Processing attempt %d/%d", attempt, max_attempts)
            snapshot = await self._store.read()
            if not snapshot.exists:
                logger.warning("Attempt %d: document not found, nothing to process", attempt)
                return EnrichmentRunResult(op_id=op_id, outcome="no_document", attempts=attempt)

            state = ProcessingState(document=snapshot.data)
            await self._description_phase.run(state)
            await self._translation_phase.run(state)
            result = _result_from_state(op_id, attempt, state)

            if not state.changes_made:
                logger.info("Attempt %d: no changes made", attempt)
                result.outcome = "no_changes"
                return result

            set_phase_context("commit")
            current = await self._store.current_version()
            if current != snapshot.version:
                logger.warning(
                    "Attempt %d: version conflict (read %s, now %s)",
                    attempt, snapshot.version, current,
                )
                if attempt < max_attempts:
                    delay = self._settings.conflict_backoff_base_s * (2 ** attempt)
                    logger.debug("Discarding changes and retrying in %.2fs", delay)
                    await self._sleep(delay)
                    continue
                logger.error("Max retries (%d) reached on version conflict, aborting", max_attempts)
                result.outcome = "conflict_aborted"
                return result

            result.committed_version = await self._store.write(
                state.document, op_id, "supervisor", previous_version=snapshot.version
            )
            result.outcome = "committed"
            return result

        return result


def _result_from_state(op_id: str, attempt: int, state: ProcessingState) -> EnrichmentRunResult:
    return EnrichmentRunResult(
        op_id=op_id,
        outcome="conflict_aborted",
        attempts=attempt,
        descriptions_generated=state.descriptions_generated,
        translations_completed=state.translations_completed,
        translations_failed=state.translations_failed,
        verifications=state.verifications,
        translation_service_disabled=state.translation_service_disabled,
    )
