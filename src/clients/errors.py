# src/clients/errors.py — v1
"""Exceptions raised by external API clients.

The retrying caller classifies failures by exception type: ApiError with a
4xx status other than 429 is a client error, ConfigError is a
configuration error, everything else (timeouts, 5xx, 429, empty or invalid
payloads, network errors) is transient.
"""

from __future__ import annotations

TRANSLATION_API_DISABLED_MARKER = "Cloud Translation API"


class ExternalCallError(Exception):
    """Base class for failures of a call to an external service."""


class ApiError(ExternalCallError):
    """Non-2xx HTTP response."""

    def __init__(self, message: str, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """4xx other than 429; not retried."""
        return 400 <= self.status < 500 and self.status != 429

    @property
    def is_service_disabled(self) -> bool:
        """403 stating the translation API itself is disabled for the project."""
        return self.status == 403 and (
            TRANSLATION_API_DISABLED_MARKER in str(self)
            or TRANSLATION_API_DISABLED_MARKER in self.body
        )


class ConfigError(ExternalCallError):
    """Missing or invalid credential / configuration; never retried."""


class EmptyResponseError(ExternalCallError):
    """Success status but no usable payload."""


class TimeoutFailure(ExternalCallError):
    """The call exceeded its explicit timeout."""


class GenerationValidationError(ExternalCallError):
    """Generated text was rejected (e.g. outside the length bounds)."""
