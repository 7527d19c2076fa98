from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from syntagma.config import PassageLimits
from syntagma.errors import PassageGenerationError
from syntagma.learning.batch import apply_batch
from syntagma.learning.passage import generate_passage, select_passage_words
from syntagma.prompts.templates import DEFAULT_PASSAGE_TEMPLATE, PromptParams, load_template, render_prompt
from syntagma.scheduler.transitions import Import

UTC = timezone.utc
NOW = datetime(2026, 2, 12, 9, 0, tzinfo=UTC)


def _seed(db, *, due: list[str] = (), targets: list[str] = ()) -> None:
    if due:
        apply_batch(db, language="es", events=[(w, Import(make_due_now=True)) for w in due], now=NOW)
    if targets:
        apply_batch(db, language="es", events=[(w, Import(make_target_list=True)) for w in targets], now=NOW)


def test_render_prompt_fills_every_placeholder():
    prompt = render_prompt(
        DEFAULT_PASSAGE_TEMPLATE,
        PromptParams(language="es", level="B1", mode="reinforcement", review_words=["gato", "casa"], target_words=[]),
    )

    assert "{{" not in prompt
    assert "in es at B1 level" in prompt
    assert "gato, casa" in prompt
    assert "NEW_TEST_WORDS): None" in prompt
    assert "REINFORCEMENT session" in prompt


def test_load_template_prefers_override_file(tmp_path):
    override = tmp_path / "master_prompt.txt"
    override.write_text("Lang={{LANGUAGE_CODE}} new={{NEW_WORDS_LIST}}", encoding="utf-8")

    assert load_template(override) == "Lang={{LANGUAGE_CODE}} new={{NEW_WORDS_LIST}}"
    assert load_template(tmp_path / "absent.txt") == DEFAULT_PASSAGE_TEMPLATE
    assert load_template(None) == DEFAULT_PASSAGE_TEMPLATE


def test_selection_uses_full_target_list_when_few_reviews(temp_db):
    _seed(temp_db, due=["uno"], targets=["c", "a", "b"])
    limits = PassageLimits(review_words=4, target_words=3, reduced_target_words=1, target_threshold=2)

    selection = select_passage_words(temp_db, language="es", now=NOW, limits=limits)

    assert selection.review_words == ["uno"]
    assert selection.target_words == ["c", "a", "b"]
    assert selection.mode == "introduction"


def test_selection_shrinks_target_list_and_reinforces_when_many_reviews(temp_db):
    _seed(temp_db, due=["uno", "dos", "tres", "cuatro", "cinco"], targets=["c", "a", "b"])
    limits = PassageLimits(review_words=4, target_words=3, reduced_target_words=1, target_threshold=2)

    selection = select_passage_words(temp_db, language="es", now=NOW, limits=limits)

    assert len(selection.review_words) == 4
    assert selection.target_words == ["c"]
    assert selection.mode == "reinforcement"


def test_due_target_words_are_reviews_not_targets(temp_db):
    apply_batch(temp_db, language="es", events=[("gato", Import(make_target_list=True, make_due_now=True))], now=NOW)

    selection = select_passage_words(temp_db, language="es", now=NOW)

    assert selection.review_words == ["gato"]
    assert selection.target_words == []


def test_generate_passage_caches_only_target_glossary(temp_db, fake_llm):
    _seed(temp_db, due=["casa"], targets=["perro"])
    fake_llm.glossary = {"Perro": "dog", "casa": "house", "luna": "moon"}

    result = generate_passage(temp_db, fake_llm, language="es", level="A2", now=NOW)

    assert result["passage"] == fake_llm.passage
    assert result["cached_glossary"] == 1
    assert temp_db.get_translation("perro", "es") == "dog"
    assert temp_db.get_translation("casa", "es") is None
    assert temp_db.get_translation("luna", "es") is None
    assert "perro" in fake_llm.prompts[0]


def test_generate_passage_uses_template_override(temp_db, fake_llm, tmp_path):
    _seed(temp_db, targets=["perro"])
    override = tmp_path / "master_prompt.txt"
    override.write_text("Story ({{USER_LEVEL}}): {{NEW_WORDS_LIST}} / {{REVIEW_WORDS_LIST}}", encoding="utf-8")

    generate_passage(temp_db, fake_llm, language="es", level="C1", now=NOW, template_path=override)

    assert fake_llm.prompts == ["Story (C1): perro / None"]


def test_generation_failure_propagates_without_caching(temp_db, fake_llm):
    _seed(temp_db, targets=["perro"])
    fake_llm.error = PassageGenerationError("quota_exceeded", "API quota exceeded.")

    with pytest.raises(PassageGenerationError):
        generate_passage(temp_db, fake_llm, language="es", level="A2", now=NOW)
    assert temp_db.get_translation("perro", "es") is None


def test_target_words_become_due_after_a_year(temp_db):
    _seed(temp_db, targets=["perro"])

    selection = select_passage_words(temp_db, language="es", now=NOW + timedelta(days=366))

    assert selection.review_words == ["perro"]
