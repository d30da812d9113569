# src/retry/caller.py — v1
"""Bounded retries with exponential backoff and persistent blacklisting.

Two layers of protection against a chronically failing resource:
  * a per-task counter (``TaskFailureCounter``) that fast-fails a resource
    once it has failed ``max_failures_per_resource_in_task`` times within
    the same (task, action);
  * a cross-run counter ``failures:<resource>`` in the lock store which,
    once it reaches ``max_total_failures_in_run``, writes
    ``blacklist:<resource>``. Both keys expire via TTL.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from modelsync.clients.errors import ApiError, ConfigError, EmptyResponseError
from modelsync.core.models import CallOutcome, ErrorKind
from modelsync.kv.base_kv_store import BaseKVStore

if TYPE_CHECKING:
    from modelsync.config.settings import Settings

logger = logging.getLogger(__name__)

BLACKLIST_PREFIX = "blacklist:"
FAILURE_COUNT_PREFIX = "failures:"


@dataclass(frozen=True)
class RetryPolicy:
    """Limits applied by RetryingCaller."""

    max_retries: int = 2
    max_failures_per_resource_in_task: int = 2
    max_total_failures_in_run: int = 3
    base_delay_s: float = 1.0
    blacklist_ttl_s: int = 3600
    failure_count_ttl_s: int = 3600

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_api_call_retries,
            max_failures_per_resource_in_task=settings.max_api_failures_per_model_in_task,
            max_total_failures_in_run=settings.max_total_api_failures_in_run,
            base_delay_s=settings.retry_base_delay_s,
            blacklist_ttl_s=settings.persistent_blacklist_ttl_s,
            failure_count_ttl_s=settings.persistent_failure_count_ttl_s,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before the next try; ``attempt`` is 1-based."""
        return self.base_delay_s * (2 ** (attempt - 1))


class TaskFailureCounter:
    """In-memory failure counts keyed by (resource, task, action).

    One instance lives for the duration of a single task and is shared by
    every call made on behalf of that task.
    """

    def __init__(self) -> None:
        self._counts: Counter[tuple[str, str, str]] = Counter()

    def get(self, resource_id: str, task_id: str, action: str) -> int:
        return self._counts[(resource_id, task_id, action)]

    def increment(self, resource_id: str, task_id: str, action: str) -> int:
        key = (resource_id, task_id, action)
        self._counts[key] += 1
        return self._counts[key]

    def exhausted(self, resource_id: str, task_id: str, action: str, limit: int) -> bool:
        return self.get(resource_id, task_id, action) >= limit


def classify_failure(error: BaseException) -> ErrorKind:
    """Map an exception onto the failure taxonomy."""
    if isinstance(error, ConfigError):
        return ErrorKind.CONFIG_ERROR
    if isinstance(error, ApiError) and error.is_client_error:
        return ErrorKind.CLIENT_ERROR
    if isinstance(error, EmptyResponseError):
        return ErrorKind.EMPTY_RESPONSE
    return ErrorKind.TRANSIENT


class RetryingCaller:
    """Invoke external operations under a RetryPolicy."""

    def __init__(
        self,
        locks_kv: BaseKVStore,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._kv = locks_kv
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def is_blacklisted(self, resource_id: str) -> bool:
        return bool(await self._kv.get(f"{BLACKLIST_PREFIX}{resource_id}"))

    async def _record_persistent_failure(self, resource_id: str, policy: RetryPolicy) -> None:
        key = f"{FAILURE_COUNT_PREFIX}{resource_id}"
        raw = await self._kv.get(key)
        try:
            total = int(raw or 0) + 1
        except ValueError:
            total = 1
        await self._kv.put(key, str(total), ttl_seconds=policy.failure_count_ttl_s)
        if total >= policy.max_total_failures_in_run:
            await self._kv.put(
                f"{BLACKLIST_PREFIX}{resource_id}", "1", ttl_seconds=policy.blacklist_ttl_s
            )
            logger.warning(
                "Resource %s blacklisted for %ds after %d failures",
                resource_id, policy.blacklist_ttl_s, total,
            )

    async def call(
        self,
        operation: Callable[..., Awaitable[Any]],
        args: Sequence[Any],
        resource_id: str,
        task_id: str,
        action: str,
        failures: TaskFailureCounter,
        policy: RetryPolicy | None = None,
    ) -> CallOutcome:
        """Run ``operation(*args)`` until success, a terminal error or the retry cap.

        Never raises for failures of ``operation``; store errors propagate.
        """
        policy = policy or self.policy
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(1, policy.max_retries + 1):
            if await self.is_blacklisted(resource_id):
                logger.info("%s: resource %s is blacklisted, skipping", action, resource_id)
                return CallOutcome(
                    success=False, resource_id=resource_id, error=last_error,
                    error_kind=ErrorKind.BLACKLISTED_PERSISTENT, attempts=attempts,
                )
            if failures.exhausted(
                resource_id, task_id, action, policy.max_failures_per_resource_in_task
            ):
                logger.info(
                    "%s: resource %s exhausted its budget for task %s",
                    action, resource_id, task_id,
                )
                return CallOutcome(
                    success=False, resource_id=resource_id, error=last_error,
                    error_kind=ErrorKind.BLACKLISTED_TASK_ACTION, attempts=attempts,
                )

            attempts = attempt
            try:
                result = await operation(*args)
            except Exception as e:
                last_error = e
                kind = classify_failure(e)
                if kind in (ErrorKind.CLIENT_ERROR, ErrorKind.CONFIG_ERROR):
                    logger.error(
                        "%s: %s for %s (task %s): %s",
                        action, kind.value, resource_id, task_id, e,
                    )
                    return CallOutcome(
                        success=False, resource_id=resource_id, error=e,
                        error_kind=kind, attempts=attempts,
                    )

                failures.increment(resource_id, task_id, action)
                await self._record_persistent_failure(resource_id, policy)

                if attempt < policy.max_retries:
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        "%s: %s on %s (attempt %d/%d), retrying in %.1fs: %s",
                        action, kind.value, resource_id, attempt, policy.max_retries, delay, e,
                    )
                    await self._sleep(delay)
                    continue
                logger.error(
                    "%s: giving up on %s after %d attempts: %s",
                    action, resource_id, attempt, e,
                )
            else:
                return CallOutcome(
                    success=True, resource_id=resource_id, result=result, attempts=attempts,
                )

        return CallOutcome(
            success=False, resource_id=resource_id, error=last_error,
            error_kind=ErrorKind.MAX_RETRIES_EXCEEDED, attempts=attempts,
        )
