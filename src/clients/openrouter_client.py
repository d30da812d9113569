# src/clients/openrouter_client.py — v1
"""OpenRouter client: chat completions for generation, /models for the catalog.

Uses httpx.AsyncClient with an explicit timeout on every request; a timeout
surfaces as TimeoutFailure so the retrying caller treats it as transient.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from modelsync.clients.base_client import (
    BaseCatalogClient,
    BaseGenerationClient,
    raise_for_api_status,
)
from modelsync.clients.errors import ConfigError, EmptyResponseError, TimeoutFailure

logger = logging.getLogger(__name__)


class OpenRouterClient(BaseGenerationClient, BaseCatalogClient):
    """OpenRouter API adapter."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        referer: str = "",
        title: str = "",
        generation_timeout_s: float = 35.0,
        catalog_timeout_s: float = 60.0,
        max_tokens: int = 210,
        temperature: float = 0.75,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._referer = referer
        self._title = title
        self._generation_timeout = httpx.Timeout(generation_timeout_s)
        self._catalog_timeout = httpx.Timeout(catalog_timeout_s)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._http = http_client or httpx.AsyncClient()

    async def generate(self, prompt: str, model_id: str) -> str:
        if "/" in model_id and not self._api_key:
            logger.error("OPENROUTER_KEY missing for model %r", model_id)
            raise ConfigError("OPENROUTER_KEY missing.")

        logger.info("Calling AI model %s (timeout %.0fs)", model_id, self._generation_timeout.read or 0)
        try:
            response = await self._http.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "HTTP-Referer": self._referer,
                    "X-Title": self._title,
                },
                json={
                    "model": model_id,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": self._max_tokens,
                    "temperature": self._temperature,
                },
                timeout=self._generation_timeout,
            )
        except httpx.TimeoutException as e:
            raise TimeoutFailure(f"Generation call to {model_id} timed out") from e

        raise_for_api_status(response, f"OpenRouter (Model: {model_id})")

        payload = response.json()
        try:
            content = payload["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            content = ""
        content = content.strip()
        if not content:
            logger.warning("AI model %s returned empty content", model_id)
            raise EmptyResponseError("AI returned empty content.")

        logger.info("AI model %s responded. Length: %d", model_id, len(content))
        return content

    async def fetch_models(self) -> list[dict[str, Any]]:
        if not self._api_key:
            raise ConfigError("OPENROUTER_KEY is not configured.")
        try:
            response = await self._http.get(
                f"{self._base_url}/models",
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._catalog_timeout,
            )
        except httpx.TimeoutException as e:
            raise TimeoutFailure("Catalog fetch timed out") from e

        raise_for_api_status(response, "OpenRouter catalog", body_limit=200)
        models = (response.json() or {}).get("data") or []
        if not models:
            raise EmptyResponseError("Catalog returned 0 models.")
        logger.info("Fetched %d models from catalog", len(models))
        return models

    async def close(self) -> None:
        await self._http.aclose()
