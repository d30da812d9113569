# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for syncer, enrichment and maintenance settings.
Every field maps to an upper-case environment variable of the same name
(e.g. ``PROCESSING_CHUNK_SIZE``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


DEFAULT_SERIES_DESC_PROMPT = (
    "You are an AI assistant tasked with creating a very concise and informative "
    "description for a series of AI models.\n"
    'Given Producer: "{PRODUCER_NAME}" and Series: "{SERIES_NAME}".\n'
    "Generate a single, compelling English sentence.\n"
    "This description MUST be between 40 and {MAX_LENGTH} characters long.\n"
    "Focus on the series' general purpose or key characteristic. Avoid redundancy.\n"
    'Example for "OpenAI / ChatGPT": "Versatile conversational AI for a wide range of tasks."\n'
    "Concise English Description (40-{MAX_LENGTH} chars):"
)


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Enrichment run ===
    target_languages: str = "tr,fr,zh"
    processing_chunk_size: int = 4
    max_conflict_retries: int = 3
    conflict_backoff_base_s: float = 0.25

    # === Locks ===
    lock_ttl_s: int = 300
    syncer_lock_ttl_s: int = 600
    cleanup_lock_ttl_s: int = 60
    data_write_lock_ttl_s: int = 20
    lock_settle_delay_s: float = 0.3

    # === API keys ===
    openrouter_key: str = ""
    google_translate_api_key: str = ""

    # === OpenRouter ===
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "https://cortex-supervisor.app.com"
    openrouter_title: str = "Cortex Supervisor Worker"

    # === Google Translate ===
    google_translate_url: str = (
        "https://translation.googleapis.com/language/translate/v2"
    )

    # === Series description generation ===
    series_desc_prompt: str = DEFAULT_SERIES_DESC_PROMPT
    series_desc_min_length: int = 40
    series_desc_max_length: int = 160
    series_desc_timeout_s: float = 35.0
    series_desc_retries: int = 3

    # === Translation ===
    translation_timeout_s: float = 45.0

    # === Failure handling & blacklisting ===
    max_api_call_retries: int = 2
    max_api_failures_per_model_in_task: int = 2
    max_total_api_failures_in_run: int = 3
    max_cumulative_failures_per_item: int = 5
    persistent_blacklist_ttl_s: int = 3600
    persistent_failure_count_ttl_s: int = 3600
    retry_base_delay_s: float = 1.0

    # === Syncer ===
    fetch_timeout_s: float = 60.0
    manual_url_check_timeout_s: float = 5.0
    text_cost_limit: float = 0.000005
    image_cost_limit: float = 0.0001
    web_search_cost_limit: float = 0.02
    tier_text_premium: float = 0.0000007
    tier_image_premium: float = 0.00001

    # === Cleanup thresholds ===
    corrupted_series_en_desc_threshold: int = 200
    corrupted_series_translation_threshold: int = 200
    corrupted_variant_translation_threshold: int = 2000

    # === Key-value backend ===
    kv_backend: Literal["memory", "json", "redis"] = "json"
    kv_root: Path = Path("~/.modelsync/kv")
    kv_redis_url: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("processing_chunk_size", "max_conflict_retries", "max_api_call_retries")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("lock_settle_delay_s", "retry_base_delay_s", "conflict_backoff_base_s")
    @classmethod
    def validate_non_negative_delay(cls, v: float) -> float:  # noqa: N805
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.series_desc_min_length > self.series_desc_max_length:
            errors.append(
                "SERIES_DESC_MIN_LENGTH must be <= SERIES_DESC_MAX_LENGTH"
            )

        if self.kv_backend == "redis" and not self.kv_redis_url:
            errors.append("KV_BACKEND=redis requires KV_REDIS_URL")

        if self.max_total_api_failures_in_run < 1:
            errors.append("MAX_TOTAL_API_FAILURES_IN_RUN must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def target_languages_list(self) -> list[str]:
        """Parse comma-separated target languages; English is never a target."""
        langs = [lang.strip().lower() for lang in self.target_languages.split(",")]
        return [lang for lang in langs if lang and lang != "en"]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or one-off runs).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
