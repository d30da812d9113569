# src/clients/google_translate_client.py — v1
"""Google Cloud Translation (v2) client."""

from __future__ import annotations

import logging

import httpx

from modelsync.clients.base_client import BaseTranslationClient, raise_for_api_status
from modelsync.clients.errors import ConfigError, EmptyResponseError, TimeoutFailure

logger = logging.getLogger(__name__)

RESOURCE_ID = "google-translate-api"


class GoogleTranslateClient(BaseTranslationClient):
    """Translate English text via the Cloud Translation REST API."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://translation.googleapis.com/language/translate/v2",
        timeout_s: float = 45.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._timeout = httpx.Timeout(timeout_s)
        self._http = http_client or httpx.AsyncClient()

    @property
    def resource_id(self) -> str:
        return RESOURCE_ID

    async def translate(self, text: str, target_lang: str) -> str:
        if not self._api_key:
            logger.error("GOOGLE_TRANSLATE_API_KEY is missing")
            raise ConfigError("GOOGLE_TRANSLATE_API_KEY is missing.")

        logger.info("Calling Google Translate for language %s", target_lang)
        try:
            response = await self._http.post(
                self._url,
                params={"key": self._api_key},
                json={"q": text, "target": target_lang, "format": "text"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise TimeoutFailure(f"Translation to {target_lang} timed out") from e

        raise_for_api_status(response, "Google Translate", body_limit=200)

        payload = response.json() or {}
        try:
            translated = payload["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError):
            translated = None
        if not translated:
            logger.warning("Google Translate returned empty content for %s", target_lang)
            raise EmptyResponseError("Google Translate API returned empty content.")
        return translated

    async def close(self) -> None:
        await self._http.aclose()
