from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from loguru import logger

from syntagma.config import PassageLimits, TRANSLATION_TARGET_LANGUAGE
from syntagma.errors import PassageGenerationError
from syntagma.prompts.templates import PromptParams, load_template, render_prompt
from syntagma.services.llm import LLMService
from syntagma.storage.db import Database


@dataclass
class PassageSelection:
    review_words: list[str]
    target_words: list[str]
    mode: str


def select_passage_words(
    db: Database,
    *,
    language: str,
    now: datetime,
    limits: PassageLimits = PassageLimits(),
) -> PassageSelection:
    with db.connect() as conn:
        store = db.progress(conn, language)
        review = [entry.word for entry in store.due_words(now, limits.review_words)]
        target_limit = limits.target_words if len(review) < limits.target_threshold else limits.reduced_target_words
        targets = [entry.word for entry in store.target_words(now, target_limit)]
    mode = "introduction" if len(review) < limits.review_words else "reinforcement"
    return PassageSelection(review_words=review, target_words=targets, mode=mode)


def generate_passage(
    db: Database,
    llm: LLMService,
    *,
    language: str,
    level: str,
    now: datetime,
    template_path: Path | None = None,
    limits: PassageLimits = PassageLimits(),
) -> dict:
    started = time.monotonic()
    selection = select_passage_words(db, language=language, now=now, limits=limits)
    logger.info(
        "passage session: {} reviews, {} targets, mode={}",
        len(selection.review_words),
        len(selection.target_words),
        selection.mode,
    )

    prompt = render_prompt(
        load_template(template_path),
        PromptParams(
            language=language,
            level=level,
            mode=selection.mode,
            review_words=selection.review_words,
            target_words=selection.target_words,
        ),
    )
    try:
        generated = llm.generate_passage(prompt)
    except PassageGenerationError as exc:
        logger.error("passage generation failed after {:.2f}s: {}", time.monotonic() - started, exc.message)
        raise

    target_set = {word.lower() for word in selection.target_words}
    glossary = [
        (word.lower(), definition)
        for word, definition in generated.glossary.items()
        if word.lower() in target_set
    ]
    cached = db.put_translations(glossary, language, TRANSLATION_TARGET_LANGUAGE) if glossary else 0
    logger.info(
        "generated passage in {:.2f}s, cached {} glossary entries",
        time.monotonic() - started,
        cached,
    )
    return {
        "passage": generated.passage,
        "mode": selection.mode,
        "review_words": selection.review_words,
        "target_words": selection.target_words,
        "cached_glossary": cached,
    }
