# src/clients/base_client.py — v1
"""Abstract interfaces for the external services used by the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from modelsync.clients.errors import ApiError


class BaseGenerationClient(ABC):
    """AI text completion."""

    @abstractmethod
    async def generate(self, prompt: str, model_id: str) -> str:
        """Return the completion text for ``prompt`` using ``model_id``."""


class BaseTranslationClient(ABC):
    """Machine translation from English."""

    @abstractmethod
    async def translate(self, text: str, target_lang: str) -> str:
        """Return ``text`` translated into ``target_lang``."""

    @property
    @abstractmethod
    def resource_id(self) -> str:
        """Identifier used for failure counting and blacklisting."""


class BaseCatalogClient(ABC):
    """Upstream model catalog."""

    @abstractmethod
    async def fetch_models(self) -> list[dict[str, Any]]:
        """Return raw catalog records (``data`` array of the catalog API)."""


def raise_for_api_status(response: httpx.Response, label: str, body_limit: int = 300) -> None:
    """Raise ApiError for non-2xx responses, with a truncated body."""
    if response.is_success:
        return
    body = response.text[:body_limit]
    raise ApiError(
        f"{label} API error: Status: {response.status_code}, Body: {body}",
        status=response.status_code,
        body=body,
    )
