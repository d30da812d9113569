# src/core/models.py — v2
"""Core domain models shared across syncer, enrichment and maintenance.

The catalog document itself stays a plain JSON ``dict`` (it is read from and
written to the store verbatim, and carries fields this package does not
know about). The models here describe everything that is derived from it:
field addresses, discovered tasks, call outcomes and run reports.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Keys of a SeriesEntry that never name a variant.
SERIES_DESCRIPTION_KEY = "series_description"
HIDDEN_KEY = "hidden"
RESERVED_SERIES_KEYS = frozenset({SERIES_DESCRIPTION_KEY, HIDDEN_KEY})

# Keys that must never be written into a merged mapping.
UNSAFE_KEYS = frozenset({"__proto__", "constructor", "prototype"})

# Single variant name used for manual-model containers.
DEFAULT_VARIANT_NAME = "Default"

MANUAL_DETAIL_FIELDS: tuple[str, ...] = ("title", "summary", "description", "role")

PROCESSING_STATUS_KEY = "processing_status"
CUMULATIVE_FAILURE_KEY = "cumulativeFailureCount"


class ProcessingStatus(str, Enum):
    """Per-field, per-language enrichment status stored in the document."""

    NOT_PROCESSED = "not_processed"
    GENERATED = "generated"
    COMPLETED = "completed"
    TRANSLATION_RETRY = "translation_retry"
    FAILED = "FAILED"
    VERIFIED = "verified"
    AUDITED_CORRECTED = "audited_corrected"


# Statuses after which a field is only revisited when its source goes stale.
SETTLED_STATUSES = frozenset({ProcessingStatus.COMPLETED.value, ProcessingStatus.FAILED.value})


class VariantSource(str, Enum):
    OPENROUTER = "openrouter"
    MANUAL = "manual"


class ErrorKind(str, Enum):
    """Failure taxonomy used by the retrying caller and run reports."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    CONFIG_ERROR = "config_error"
    EMPTY_RESPONSE = "empty_response"
    BLACKLISTED_PERSISTENT = "blacklisted_persistent"
    BLACKLISTED_TASK_ACTION = "blacklisted_task_action"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    VERSION_CONFLICT = "version_conflict"
    LOCK_CONTENTION = "lock_contention"


class FieldKind(str, Enum):
    """Which kind of enrichable text a FieldAddress points at."""

    SERIES_DESCRIPTION = "series_description"
    VARIANT_DESCRIPTION = "variant_description"
    MANUAL_DETAIL = "manual_detail"


class FieldAddress(BaseModel):
    """Typed location of one enrichable text field for one language.

    ``field`` is ``"description"`` for series and online-variant
    descriptions, or one of MANUAL_DETAIL_FIELDS for manual models.
    """

    model_config = ConfigDict(frozen=True)

    kind: FieldKind
    producer: str
    series: str
    variant: str | None = None
    language: str
    field: str = "description"

    def task_key(self) -> str:
        """Stable identifier used for logging and per-task failure counters."""
        parts = [
            self.kind.value,
            self.producer.replace("/", "_"),
            self.series.replace("/", "_"),
            (self.variant or "series").replace("/", "_"),
            self.language,
            self.field,
        ]
        return "-".join(parts)

    def display_path(self) -> str:
        """Human-readable path of the translated value (used in reports)."""
        if self.kind is FieldKind.SERIES_DESCRIPTION:
            return f"{self.producer}/{self.series}/series_description.{self.language}"
        if self.kind is FieldKind.VARIANT_DESCRIPTION:
            return f"{self.producer}/{self.series}/{self.variant}/description.{self.language}"
        return f"{self.producer}/{self.series}/{self.variant}/details.{self.language}.{self.field}"


class DescriptionTask(BaseModel):
    """A series that needs an English description generated."""

    model_config = ConfigDict(frozen=True)

    producer: str
    series: str

    @property
    def series_key(self) -> str:
        return f"{self.producer}/{self.series}"


class TranslationTask(BaseModel):
    """A field/language pair that needs translating or EN verification."""

    address: FieldAddress
    english_text: str
    source_hash: str
    current_status: str | None = None
    is_stale: bool = False

    @property
    def language(self) -> str:
        return self.address.language

    @property
    def is_verification(self) -> bool:
        return self.address.language == "en"


class CallOutcome(BaseModel):
    """Result of one RetryingCaller.call invocation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    resource_id: str
    result: Any = None
    error: Exception | None = None
    error_kind: ErrorKind | None = None
    attempts: int = 0


class VersionedDocument(BaseModel):
    """Document blob plus the version stamp it was read with."""

    data: dict[str, Any] | None = None
    version: str | None = None
    raw: str | None = None

    @property
    def exists(self) -> bool:
        return self.data is not None


class EnrichmentRunResult(BaseModel):
    """Summary of one enrichment invocation."""

    op_id: str
    outcome: Literal[
        "committed", "no_changes", "no_document", "conflict_aborted",
        "locked_out", "lock_failed",
    ]
    attempts: int = 0
    committed_version: str | None = None
    descriptions_generated: int = 0
    translations_completed: int = 0
    translations_failed: int = 0
    verifications: int = 0
    translation_service_disabled: bool = False

    @property
    def success(self) -> bool:
        return self.outcome in ("committed", "no_changes", "no_document")


class SyncResult(BaseModel):
    """Summary of one syncer invocation."""

    op_id: str
    outcome: Literal[
        "written", "unchanged", "conflict_aborted", "locked_out", "lock_failed", "error",
    ]
    new_version: str | None = None
    new_hash: str | None = None
    online_models: int = 0
    manual_models: int = 0
    error: str | None = None


class StatusReport(BaseModel):
    """Aggregate enrichment status for operators."""

    status: Literal["ok", "error"]
    message: str | None = None
    last_supervisor_update: str = "N/A"
    last_supervisor_run_id: str = "N/A"
    lock_holders: dict[str, str | None] = Field(default_factory=dict)
    pending_translation_tasks: int = 0
    permanently_failed_tasks: int = 0
    pending_description_tasks: int = 0
    timestamp: str = ""


class CleanupReport(BaseModel):
    """Result of a maintenance sweep over over-long fields."""

    status: Literal["ok", "success", "error"]
    message: str
    cleaned_items: list[str] = Field(default_factory=list)
    new_version: str | None = None
