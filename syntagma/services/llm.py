from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field

import httpx
from loguru import logger

from syntagma.errors import PassageGenerationError

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


@dataclass
class GeneratedPassage:
    passage: str
    glossary: dict[str, str] = field(default_factory=dict)
    model: str = ""


class LLMService:
    def __init__(self, *, model_override: str | None = None) -> None:
        self.provider = os.getenv("SYNTAGMA_LLM_PROVIDER", "gemini").strip().lower()
        self.base_url = os.getenv("SYNTAGMA_LLM_BASE_URL")
        self.model = os.getenv("SYNTAGMA_LLM_MODEL")
        if model_override:
            self.model = str(model_override).strip()

        if self.provider == "openai":
            self.api_key = os.getenv("OPENAI_API_KEY")
            self.key_name = "OPENAI_API_KEY"
            self.base_url = self.base_url or "https://api.openai.com/v1"
            self.model = self.model or "gpt-4o-mini"
        else:
            # Gemini through its OpenAI-compatible endpoint.
            self.api_key = os.getenv("GEMINI_API_KEY")
            self.key_name = "GEMINI_API_KEY"
            self.base_url = self.base_url or "https://generativelanguage.googleapis.com/v1beta/openai"
            self.model = self.model or "gemini-2.5-flash-lite"

    def available(self) -> bool:
        return bool(self.api_key)

    def generate_passage(self, prompt: str, *, timeout: int = 60) -> GeneratedPassage:
        if not self.available():
            raise PassageGenerationError("missing_credential", f"{self.key_name} is not configured.")

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 1200,
            "temperature": 0.8,
            "top_p": 0.95,
        }
        try:
            data = self._chat_completion(payload, timeout=timeout)
        except httpx.HTTPStatusError as exc:
            raise classify_http_error(exc) from exc
        except httpx.TimeoutException as exc:
            raise PassageGenerationError("timeout", "Passage generation timed out.") from exc
        except httpx.HTTPError as exc:
            raise PassageGenerationError("provider_error", f"Passage provider unreachable: {exc}") from exc
        except ValueError as exc:
            raise PassageGenerationError("malformed_response", "AI returned invalid JSON.") from exc

        content = _extract_content(data)
        return GeneratedPassage(**parse_passage_payload(content), model=self.model)

    def _chat_completion(self, payload: dict, *, timeout: int = 60) -> dict:
        url = self.base_url.rstrip("/") + "/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=timeout) as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            return resp.json()


def parse_passage_payload(content: str) -> dict:
    cleaned = _FENCE_RE.sub("", content or "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("passage JSON parse error: {}", exc)
        raise PassageGenerationError("malformed_response", "AI returned invalid JSON.") from exc
    if not isinstance(data, dict):
        raise PassageGenerationError("malformed_response", "AI returned invalid JSON.")

    passage = str(data.get("passage") or "").strip()
    if not passage:
        raise PassageGenerationError("malformed_response", "AI response missing 'passage' field")

    glossary: dict[str, str] = {}
    raw_glossary = data.get("glossary")
    if isinstance(raw_glossary, dict):
        for word, definition in raw_glossary.items():
            text = str(definition or "").strip()
            if str(word).strip() and text:
                glossary[str(word).strip()] = text
    return {"passage": passage, "glossary": glossary}


def classify_http_error(exc: httpx.HTTPStatusError) -> PassageGenerationError:
    status = exc.response.status_code
    body = exc.response.text or ""
    lowered = body.lower()
    logger.error("passage provider returned {}: {}", status, body[:500])
    if "api_key_invalid" in lowered or status in {401, 403}:
        return PassageGenerationError("invalid_credential", "Invalid API Key.")
    if status == 404:
        return PassageGenerationError("model_not_found", "Model not found. Check API key.")
    if status == 429 or "quota" in lowered:
        return PassageGenerationError("quota_exceeded", "API quota exceeded.")
    return PassageGenerationError("provider_error", f"Passage provider error ({status}).")


def _extract_content(data: dict) -> str:
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, list):
        return "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
    return str(content or "")
