from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import syntagma.app as app_module
from syntagma.errors import PassageGenerationError
from syntagma.services.llm import GeneratedPassage
from syntagma.storage.db import Database


class FakeTranslator:
    def __init__(self, translations: dict[str, str] | None = None) -> None:
        self.translations = translations or {}
        self.calls: list[tuple[str, str, str]] = []

    def translate(self, word: str, source_lang: str, target_lang: str) -> str | None:
        self.calls.append((word, source_lang, target_lang))
        return self.translations.get(word)


class FakeLLM:
    def __init__(self, passage: str = "Había una vez un gato.", glossary: dict | None = None) -> None:
        self.passage = passage
        self.glossary = glossary or {}
        self.error: PassageGenerationError | None = None
        self.prompts: list[str] = []

    def generate_passage(self, prompt: str, *, timeout: int = 60) -> GeneratedPassage:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return GeneratedPassage(passage=self.passage, glossary=dict(self.glossary), model="fake")


@pytest.fixture()
def temp_db(tmp_path):
    db = Database(tmp_path / "syntagma_test.db")
    db.initialize()
    return db


@pytest.fixture()
def fake_translator():
    return FakeTranslator({"gato": "cat", "perro": "dog"})


@pytest.fixture()
def fake_llm():
    return FakeLLM()


@pytest.fixture()
def client(temp_db, fake_translator, fake_llm, monkeypatch, tmp_path):
    monkeypatch.setattr(app_module, "db", temp_db)
    monkeypatch.setattr(app_module, "translation_service", fake_translator)
    monkeypatch.setattr(app_module, "llm_service", fake_llm)
    monkeypatch.setattr(app_module, "PROMPT_TEMPLATE_PATH", tmp_path / "missing_prompt.txt")
    with TestClient(app_module.app) as c:
        yield c
