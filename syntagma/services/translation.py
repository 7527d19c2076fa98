from __future__ import annotations

import os

import httpx
from loguru import logger


class TranslationService:
    def __init__(self, *, base_url: str | None = None, timeout: float = 5.0) -> None:
        self.base_url = base_url or os.getenv(
            "SYNTAGMA_TRANSLATION_URL",
            "https://api.mymemory.translated.net/get",
        )
        self.timeout = timeout

    def translate(self, word: str, source_lang: str, target_lang: str) -> str | None:
        """Return the provider's translation, or None when it has none or fails."""
        params = {"q": word, "langpair": f"{source_lang}|{target_lang}"}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.get(self.base_url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("translation provider failed for {!r}: {}", word, exc)
            return None
        return _extract_translation(data)


def _extract_translation(data: object) -> str | None:
    if not isinstance(data, dict):
        return None
    response_data = data.get("responseData")
    if not isinstance(response_data, dict):
        return None
    text = str(response_data.get("translatedText") or "").strip()
    return text or None
