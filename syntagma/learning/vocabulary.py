from __future__ import annotations

from datetime import datetime
from typing import Sequence

from loguru import logger

from syntagma.config import TRANSLATION_TARGET_LANGUAGE, TRANSLATION_UNAVAILABLE
from syntagma.errors import ValidationError
from syntagma.learning.batch import apply_batch, apply_single
from syntagma.scheduler.srs import clamp_step, derive_status
from syntagma.scheduler.transitions import (
    Delete,
    Import,
    Lookup,
    Pass,
    Reset,
    Undo,
    VocabularyEntry,
    normalize_word,
)
from syntagma.services.translation import TranslationService
from syntagma.storage.db import Database, iso, parse_dt

ALLOWED_ACTIONS = {"delete", "reset"}


def list_vocabulary(db: Database, *, language: str, now: datetime) -> list[dict]:
    return [entry_to_dict(entry, now=now) for entry in db.list_vocabulary(language)]


def pass_words(db: Database, *, words: Sequence[str], language: str, now: datetime) -> int:
    outcomes = apply_batch(db, language=language, events=[(word, Pass()) for word in words], now=now)
    advanced = sum(1 for item in outcomes if item.changed)
    logger.info("pass batch: language={} words={} advanced={}", language, len(outcomes), advanced)
    return advanced


def lookup_word(
    db: Database,
    translator: TranslationService,
    *,
    word: str,
    language: str,
    now: datetime,
    target_lang: str = TRANSLATION_TARGET_LANGUAGE,
) -> dict:
    clean = _require_word(word)
    logger.info("looking up {!r} ({})", clean, language)
    outcome = apply_single(db, language=language, word=clean, event=Lookup(), now=now)
    prior = outcome.before if outcome else None

    translation, cached = resolve_translation(
        db,
        translator,
        word=clean,
        source_lang=language,
        target_lang=target_lang,
    )
    return {
        "word": clean,
        "translation": translation,
        "cached": cached,
        "prior_state": entry_to_dict(prior) if prior else None,
    }


def resolve_translation(
    db: Database,
    translator: TranslationService,
    *,
    word: str,
    source_lang: str,
    target_lang: str = TRANSLATION_TARGET_LANGUAGE,
) -> tuple[str, bool]:
    cached = db.get_translation(word, source_lang, target_lang)
    if cached is not None:
        logger.debug("translation cache hit for {!r}", word)
        return cached, True

    translation = translator.translate(word, source_lang, target_lang)
    if not translation:
        return TRANSLATION_UNAVAILABLE, False
    db.put_translation(word, source_lang, translation, target_lang)
    logger.info("cached translation for {!r}: {}", word, translation)
    return translation, False


def undo_lookup(
    db: Database,
    *,
    word: str,
    language: str,
    prior_state: dict | None,
    now: datetime,
) -> None:
    clean = _require_word(word)
    prior = entry_from_snapshot(clean, prior_state) if prior_state else None
    apply_single(db, language=language, word=clean, event=Undo(prior=prior), now=now)


def bulk_action(
    db: Database,
    *,
    words: Sequence[str],
    action: str,
    language: str,
    now: datetime,
) -> int:
    event = _action_event(action)
    outcomes = apply_batch(db, language=language, events=[(word, event) for word in words], now=now)
    return sum(1 for item in outcomes if item.changed)


def reset_word(db: Database, *, word: str, reset_type: str, language: str, now: datetime) -> bool:
    clean = _require_word(word)
    outcome = apply_single(db, language=language, word=clean, event=_action_event(reset_type), now=now)
    return bool(outcome and outcome.changed)


def import_words(
    db: Database,
    *,
    words: Sequence[str],
    language: str,
    make_target_list: bool,
    make_due_now: bool,
    now: datetime,
) -> int:
    event = Import(make_target_list=make_target_list, make_due_now=make_due_now)
    outcomes = apply_batch(db, language=language, events=[(word, event) for word in words], now=now)
    logger.info(
        "imported {} words (target={}, due_now={})",
        len(outcomes),
        make_target_list,
        make_due_now,
    )
    return len(outcomes)


def entry_to_dict(entry: VocabularyEntry, *, now: datetime | None = None) -> dict:
    data = {
        "word": entry.word,
        "step": entry.step,
        "interval_days": entry.interval_days,
        "next_review_at": iso(entry.next_review_at),
        "status": entry.status,
        "successful_reads": entry.successful_reads,
        "lookup_count": entry.lookup_count,
        "is_target": entry.is_target,
        "target_order": entry.target_order,
    }
    if now is not None:
        data["is_due"] = entry.is_due(now)
    return data


def entry_from_snapshot(word: str, snapshot: dict) -> VocabularyEntry:
    try:
        step = clamp_step(snapshot["step"])
        next_review = snapshot["next_review_at"]
        next_review_at = next_review if isinstance(next_review, datetime) else parse_dt(next_review)
        target_order = snapshot.get("target_order")
        return VocabularyEntry(
            word=word,
            step=step,
            interval_days=float(snapshot["interval_days"]),
            next_review_at=next_review_at,
            status=derive_status(step),
            successful_reads=max(0, int(snapshot.get("successful_reads") or 0)),
            lookup_count=max(0, int(snapshot.get("lookup_count") or 0)),
            is_target=bool(snapshot.get("is_target")),
            target_order=int(target_order) if target_order is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"invalid prior state: {exc}") from exc


def _action_event(action: str) -> Delete | Reset:
    normalized = str(action or "").strip().lower()
    if normalized not in ALLOWED_ACTIONS:
        raise ValidationError("action must be delete or reset")
    return Delete() if normalized == "delete" else Reset()


def _require_word(word: str) -> str:
    clean = normalize_word(word)
    if not clean:
        raise ValidationError("word is empty")
    return clean
