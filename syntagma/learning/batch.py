from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Sequence

from loguru import logger

from syntagma.scheduler.transitions import (
    Event,
    Undo,
    VocabularyEntry,
    apply_event,
    needs_target_order,
    normalize_word,
)
from syntagma.storage.db import Database


@dataclass(frozen=True)
class BatchOutcome:
    word: str
    before: VocabularyEntry | None
    after: VocabularyEntry | None

    @property
    def changed(self) -> bool:
        return self.before != self.after


def apply_batch(
    db: Database,
    *,
    language: str,
    events: Sequence[tuple[str, Event]],
    now: datetime,
) -> list[BatchOutcome]:
    """Apply ``events`` in order inside one transaction sharing ``now``.

    Words are normalized first and blank words are skipped. A repeated word
    sees the state written by its earlier event. Any storage failure rolls back
    the whole batch.
    """
    outcomes: list[BatchOutcome] = []
    with db.transaction() as conn:
        store = db.progress(conn, language)
        for raw_word, event in events:
            word = normalize_word(raw_word)
            if not word:
                continue
            before = store.get(word)
            next_order = store.next_target_order() if needs_target_order(before, event) else None
            after = apply_event(before, event, now, word=word, next_target_order=next_order)
            if isinstance(event, Undo) and after is not None and after.target_order is not None:
                # A restored order may have been handed out again since the snapshot.
                if store.target_order_taken(after.target_order, exclude_word=word):
                    after = replace(after, target_order=store.next_target_order())
            if after is None:
                if before is not None:
                    store.delete(word)
            elif after != before:
                store.save(after)
            outcomes.append(BatchOutcome(word=word, before=before, after=after))

    changed = sum(1 for item in outcomes if item.changed)
    logger.debug("batch applied: language={} events={} changed={}", language, len(outcomes), changed)
    return outcomes


def apply_single(
    db: Database,
    *,
    language: str,
    word: str,
    event: Event,
    now: datetime,
) -> BatchOutcome | None:
    outcomes = apply_batch(db, language=language, events=[(word, event)], now=now)
    return outcomes[0] if outcomes else None
