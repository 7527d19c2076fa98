from __future__ import annotations

import httpx
import pytest

from syntagma.errors import PassageGenerationError
from syntagma.services.llm import LLMService, classify_http_error, parse_passage_payload
from syntagma.services.translation import TranslationService


def _status_error(status: int, body: str) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://llm.test/chat/completions")
    response = httpx.Response(status, text=body, request=request)
    return httpx.HTTPStatusError("provider error", request=request, response=response)


def test_parse_passage_strips_markdown_fences():
    content = '```json\n{"passage": "El perro corre.", "glossary": {"perro": "dog", "": "x"}}\n```'

    parsed = parse_passage_payload(content)

    assert parsed["passage"] == "El perro corre."
    assert parsed["glossary"] == {"perro": "dog"}


@pytest.mark.parametrize(
    "content",
    ["not json at all", '["passage"]', '{"glossary": {}}', ""],
)
def test_malformed_passage_output_is_a_provider_error(content):
    with pytest.raises(PassageGenerationError) as info:
        parse_passage_payload(content)
    assert info.value.cause == "malformed_response"


@pytest.mark.parametrize(
    ("status", "body", "cause", "message"),
    [
        (400, '{"error": {"status": "API_KEY_INVALID"}}', "invalid_credential", "Invalid API Key."),
        (401, "unauthorized", "invalid_credential", "Invalid API Key."),
        (404, "no such model", "model_not_found", "Model not found. Check API key."),
        (429, "rate limited", "quota_exceeded", "API quota exceeded."),
        (400, "You exceeded your current quota", "quota_exceeded", "API quota exceeded."),
        (500, "boom", "provider_error", "Passage provider error (500)."),
    ],
)
def test_http_errors_are_classified(status, body, cause, message):
    error = classify_http_error(_status_error(status, body))

    assert error.cause == cause
    assert error.message == message


def test_generate_passage_without_key_reports_missing_credential(monkeypatch):
    monkeypatch.setenv("SYNTAGMA_LLM_PROVIDER", "gemini")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(PassageGenerationError) as info:
        LLMService().generate_passage("prompt")
    assert info.value.cause == "missing_credential"


def test_generate_passage_reads_chat_completion(monkeypatch):
    monkeypatch.setenv("SYNTAGMA_LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.delenv("SYNTAGMA_LLM_MODEL", raising=False)
    service = LLMService()
    captured = {}

    def fake_completion(payload, *, timeout=60):
        captured.update(payload)
        return {"choices": [{"message": {"content": '{"passage": "Hola.", "glossary": {"hola": "hello"}}'}}]}

    monkeypatch.setattr(service, "_chat_completion", fake_completion)
    result = service.generate_passage("write something")

    assert captured["model"] == "gpt-4o-mini"
    assert captured["messages"][0]["content"] == "write something"
    assert result.passage == "Hola."
    assert result.glossary == {"hola": "hello"}


def test_generate_passage_maps_timeout(monkeypatch):
    monkeypatch.setenv("SYNTAGMA_LLM_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    service = LLMService()

    def slow_completion(payload, *, timeout=60):
        raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr(service, "_chat_completion", slow_completion)

    with pytest.raises(PassageGenerationError) as info:
        service.generate_passage("prompt")
    assert info.value.cause == "timeout"


def test_non_json_provider_body_is_a_malformed_response(monkeypatch):
    monkeypatch.setenv("SYNTAGMA_LLM_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(PassageGenerationError) as info:
        LLMService().generate_passage("prompt")
    assert info.value.cause == "malformed_response"


@pytest.mark.parametrize(
    "body",
    [
        {"choices": ["oops"]},
        {"choices": [{"message": "plain text"}]},
        {"choices": []},
        ["not", "an", "object"],
    ],
)
def test_unexpected_completion_shape_is_a_malformed_response(monkeypatch, body):
    monkeypatch.setenv("SYNTAGMA_LLM_PROVIDER", "gemini")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    _patch_transport(monkeypatch, lambda request: httpx.Response(200, json=body))

    with pytest.raises(PassageGenerationError) as info:
        LLMService().generate_passage("prompt")
    assert info.value.cause == "malformed_response"


def test_translation_service_reads_provider_payload(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["langpair"] == "es|en"
        return httpx.Response(200, json={"responseData": {"translatedText": "cat"}})

    _patch_transport(monkeypatch, handler)

    assert TranslationService(base_url="https://translate.test/get").translate("gato", "es", "en") == "cat"


def test_translation_service_returns_none_on_failure(monkeypatch):
    _patch_transport(monkeypatch, lambda request: httpx.Response(503, text="down"))

    assert TranslationService(base_url="https://translate.test/get").translate("gato", "es", "en") is None


def _patch_transport(monkeypatch, handler):
    real_client = httpx.Client

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "Client", client_factory)
