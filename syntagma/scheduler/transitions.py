"""Vocabulary progress state machine.

Every transition is a pure function of the current entry (or ``None`` when the
word has never been stored), the event and the reference time ``now``. The
result is the entry that must be stored afterwards, or ``None`` when the entry
must not exist. Storage and batching live in ``syntagma.learning.batch``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from syntagma.errors import ValidationError
from syntagma.scheduler.srs import MAX_STEP, derive_status, interval_in_days, next_review_at

DUE_NOW_BACKDATE = timedelta(minutes=10)
IMPORT_DELAY = timedelta(minutes=1)
TARGET_IMPORT_DELAY = timedelta(days=365)


@dataclass(frozen=True)
class VocabularyEntry:
    word: str
    step: int
    interval_days: float
    next_review_at: datetime
    status: str
    successful_reads: int = 0
    lookup_count: int = 0
    is_target: bool = False
    target_order: int | None = None

    def is_due(self, now: datetime) -> bool:
        return self.next_review_at <= now


@dataclass(frozen=True)
class Lookup:
    pass


@dataclass(frozen=True)
class Pass:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class Delete:
    pass


@dataclass(frozen=True)
class Import:
    make_target_list: bool = False
    make_due_now: bool = False


@dataclass(frozen=True)
class Undo:
    prior: VocabularyEntry | None


Event = Lookup | Pass | Reset | Delete | Import | Undo


def normalize_word(word: str) -> str:
    return str(word or "").strip().lower()


def apply_event(
    current: VocabularyEntry | None,
    event: Event,
    now: datetime,
    *,
    word: str | None = None,
    next_target_order: int | None = None,
) -> VocabularyEntry | None:
    """Return the entry state after ``event``.

    ``word`` is only needed when ``current`` is ``None`` and the event creates
    the entry. ``next_target_order`` must be supplied for a target-list import
    of a word that has no order yet.
    """
    key = current.word if current is not None else normalize_word(word or "")
    if isinstance(event, Lookup):
        return _lookup(current, key, now)
    if isinstance(event, Pass):
        return _pass(current, key, now)
    if isinstance(event, Reset):
        return _reset(current, now)
    if isinstance(event, Delete):
        return None
    if isinstance(event, Import):
        return _import(current, key, event, now, next_target_order)
    if isinstance(event, Undo):
        return _undo(current, event.prior)
    raise ValidationError(f"unsupported event: {event!r}")


def needs_target_order(current: VocabularyEntry | None, event: Event) -> bool:
    if not isinstance(event, Import) or not event.make_target_list:
        return False
    return current is None or current.target_order is None


def _lookup(current: VocabularyEntry | None, word: str, now: datetime) -> VocabularyEntry:
    _require_word(word)
    if current is None:
        return VocabularyEntry(
            word=word,
            step=0,
            interval_days=interval_in_days(0),
            next_review_at=now,
            status=derive_status(0),
            lookup_count=1,
        )
    return replace(
        current,
        step=0,
        interval_days=interval_in_days(0),
        next_review_at=now,
        status=derive_status(0),
        lookup_count=current.lookup_count + 1,
        is_target=False,
        target_order=None,
    )


def _pass(current: VocabularyEntry | None, word: str, now: datetime) -> VocabularyEntry:
    if current is None:
        _require_word(word)
        return VocabularyEntry(
            word=word,
            step=MAX_STEP,
            interval_days=interval_in_days(MAX_STEP),
            next_review_at=next_review_at(MAX_STEP, now),
            status=derive_status(MAX_STEP),
            successful_reads=1,
        )
    if not (current.is_target or current.is_due(now)):
        return current

    # Reading a target word without looking it up counts as mastery.
    step = MAX_STEP if current.is_target else min(current.step + 1, MAX_STEP)
    return replace(
        current,
        step=step,
        interval_days=interval_in_days(step),
        next_review_at=next_review_at(step, now),
        status=derive_status(step),
        successful_reads=current.successful_reads + 1,
        is_target=False,
        target_order=None,
    )


def _reset(current: VocabularyEntry | None, now: datetime) -> VocabularyEntry | None:
    if current is None:
        return None
    return replace(
        current,
        step=0,
        interval_days=interval_in_days(0),
        next_review_at=now,
        status=derive_status(0),
        is_target=False,
        target_order=None,
    )


def _import(
    current: VocabularyEntry | None,
    word: str,
    event: Import,
    now: datetime,
    next_target_order: int | None,
) -> VocabularyEntry:
    if event.make_due_now:
        scheduled = now - DUE_NOW_BACKDATE
    elif event.make_target_list:
        scheduled = now + TARGET_IMPORT_DELAY
    else:
        scheduled = now + IMPORT_DELAY

    if event.make_target_list and (current is None or current.target_order is None):
        if next_target_order is None:
            raise ValidationError("target-list import needs the next target order")

    if current is None:
        _require_word(word)
        return VocabularyEntry(
            word=word,
            step=0,
            interval_days=interval_in_days(0),
            next_review_at=scheduled,
            status=derive_status(0),
            is_target=event.make_target_list,
            target_order=next_target_order if event.make_target_list else None,
        )

    updated = current
    if event.make_target_list:
        updated = replace(
            updated,
            is_target=True,
            target_order=updated.target_order if updated.target_order is not None else next_target_order,
        )
    if event.make_due_now:
        updated = replace(
            updated,
            step=0,
            interval_days=interval_in_days(0),
            next_review_at=scheduled,
            status=derive_status(0),
        )
    return updated


def _undo(current: VocabularyEntry | None, prior: VocabularyEntry | None) -> VocabularyEntry | None:
    if prior is None:
        return None
    if current is None:
        return prior
    return replace(prior, word=current.word, lookup_count=max(0, current.lookup_count - 1))


def _require_word(word: str) -> None:
    if not word:
        raise ValidationError("word is empty")
