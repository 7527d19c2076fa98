from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from syntagma.config import DB_PATH, LEARNER_ID, TRANSLATION_TARGET_LANGUAGE
from syntagma.errors import StorageError
from syntagma.scheduler.transitions import VocabularyEntry

UTC = timezone.utc


class Database:
    def __init__(self, db_path: Path = DB_PATH, *, learner_id: str = LEARNER_ID) -> None:
        self.db_path = db_path
        self.learner_id = learner_id

    @contextmanager
    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """Serialized write transaction; everything inside commits or nothing does."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        schema_path = Path(__file__).with_name("schema.sql")
        with self.connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(schema_path.read_text(encoding="utf-8"))

    def progress(self, conn: sqlite3.Connection, language: str) -> ProgressStore:
        return ProgressStore(conn, learner_id=self.learner_id, language=language)

    def list_vocabulary(self, language: str) -> list[VocabularyEntry]:
        with self.connect() as conn:
            return self.progress(conn, language).list_all()

    def get_entry(self, language: str, word: str) -> VocabularyEntry | None:
        with self.connect() as conn:
            return self.progress(conn, language).get(word)

    def get_translation(
        self,
        word: str,
        source_lang: str,
        target_lang: str = TRANSLATION_TARGET_LANGUAGE,
    ) -> str | None:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT translation FROM translation_cache
                WHERE word = ? AND source_lang = ? AND target_lang = ?
                """,
                (word, source_lang, target_lang),
            ).fetchone()
        return str(row["translation"]) if row else None

    def put_translation(
        self,
        word: str,
        source_lang: str,
        translation: str,
        target_lang: str = TRANSLATION_TARGET_LANGUAGE,
    ) -> None:
        with self.connect() as conn:
            _upsert_translation(conn, word, source_lang, target_lang, translation)

    def put_translations(
        self,
        entries: Iterable[tuple[str, str]],
        source_lang: str,
        target_lang: str = TRANSLATION_TARGET_LANGUAGE,
    ) -> int:
        written = 0
        with self.transaction() as conn:
            for word, translation in entries:
                _upsert_translation(conn, word, source_lang, target_lang, translation)
                written += 1
        return written

    def save_session(self, language: str, passage_text: str, looked_up_words: list[str]) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO reading_sessions (user_id, language_code, passage_text, looked_up_words)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, language_code)
                DO UPDATE SET
                    passage_text = excluded.passage_text,
                    looked_up_words = excluded.looked_up_words,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (self.learner_id, language, passage_text, _json_dumps(looked_up_words)),
            )

    def load_session(self, language: str) -> dict | None:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT passage_text, looked_up_words
                FROM reading_sessions
                WHERE user_id = ? AND language_code = ?
                """,
                (self.learner_id, language),
            ).fetchone()
        if row is None:
            return None
        return {
            "passage": row["passage_text"],
            "looked_up_words": _json_loads(row["looked_up_words"]),
        }


class ProgressStore:
    """Progress rows of one learner and language, bound to an open connection."""

    def __init__(self, conn: sqlite3.Connection, *, learner_id: str, language: str) -> None:
        self.conn = conn
        self.learner_id = learner_id
        self.language = language

    def get(self, word: str) -> VocabularyEntry | None:
        row = self.conn.execute(
            """
            SELECT * FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ? AND word_text = ?
            """,
            (self.learner_id, self.language, word),
        ).fetchone()
        return entry_from_row(row) if row else None

    def save(self, entry: VocabularyEntry) -> None:
        self.conn.execute(
            """
            INSERT INTO user_vocabulary_progress
            (
              user_id, language_code, word_text, current_step, interval_days, next_review_at,
              status, successful_reads, lookup_count, is_target_word, target_order
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, language_code, word_text)
            DO UPDATE SET
                current_step = excluded.current_step,
                interval_days = excluded.interval_days,
                next_review_at = excluded.next_review_at,
                status = excluded.status,
                successful_reads = excluded.successful_reads,
                lookup_count = excluded.lookup_count,
                is_target_word = excluded.is_target_word,
                target_order = excluded.target_order,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                self.learner_id,
                self.language,
                entry.word,
                entry.step,
                entry.interval_days,
                iso(entry.next_review_at),
                entry.status,
                entry.successful_reads,
                entry.lookup_count,
                int(entry.is_target),
                entry.target_order,
            ),
        )

    def delete(self, word: str) -> int:
        cur = self.conn.execute(
            """
            DELETE FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ? AND word_text = ?
            """,
            (self.learner_id, self.language, word),
        )
        return int(cur.rowcount or 0)

    def next_target_order(self) -> int:
        row = self.conn.execute(
            """
            SELECT COALESCE(MAX(target_order), -1) + 1 AS next_order
            FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ?
            """,
            (self.learner_id, self.language),
        ).fetchone()
        return int(row["next_order"])

    def target_order_taken(self, order: int, *, exclude_word: str) -> bool:
        row = self.conn.execute(
            """
            SELECT 1 FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ? AND target_order = ? AND word_text != ?
            LIMIT 1
            """,
            (self.learner_id, self.language, order, exclude_word),
        ).fetchone()
        return row is not None

    def list_all(self) -> list[VocabularyEntry]:
        rows = self.conn.execute(
            """
            SELECT * FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ?
            ORDER BY next_review_at ASC, word_text ASC
            """,
            (self.learner_id, self.language),
        ).fetchall()
        return [entry_from_row(row) for row in rows]

    def due_words(self, now: datetime, limit: int) -> list[VocabularyEntry]:
        rows = self.conn.execute(
            """
            SELECT * FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ? AND next_review_at <= ?
            ORDER BY next_review_at ASC, word_text ASC
            LIMIT ?
            """,
            (self.learner_id, self.language, iso(now), max(0, int(limit))),
        ).fetchall()
        return [entry_from_row(row) for row in rows]

    def target_words(self, now: datetime, limit: int) -> list[VocabularyEntry]:
        rows = self.conn.execute(
            """
            SELECT * FROM user_vocabulary_progress
            WHERE user_id = ? AND language_code = ?
              AND is_target_word = 1 AND next_review_at > ?
            ORDER BY target_order ASC, word_text ASC
            LIMIT ?
            """,
            (self.learner_id, self.language, iso(now), max(0, int(limit))),
        ).fetchall()
        return [entry_from_row(row) for row in rows]


def entry_from_row(row: sqlite3.Row) -> VocabularyEntry:
    return VocabularyEntry(
        word=row["word_text"],
        step=int(row["current_step"]),
        interval_days=float(row["interval_days"]),
        next_review_at=parse_dt(row["next_review_at"]),
        status=row["status"],
        successful_reads=int(row["successful_reads"] or 0),
        lookup_count=int(row["lookup_count"] or 0),
        is_target=bool(row["is_target_word"]),
        target_order=row["target_order"],
    )


def iso(value: datetime) -> str:
    # Uniform precision keeps lexical order equal to chronological order.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _upsert_translation(
    conn: sqlite3.Connection,
    word: str,
    source_lang: str,
    target_lang: str,
    translation: str,
) -> None:
    conn.execute(
        """
        INSERT INTO translation_cache (word, source_lang, target_lang, translation)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(word, source_lang, target_lang)
        DO UPDATE SET translation = excluded.translation, updated_at = CURRENT_TIMESTAMP
        """,
        (word, source_lang, target_lang, translation),
    )


def _json_dumps(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def _json_loads(value: str | None) -> list:
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError:
        return []
    return loaded if isinstance(loaded, list) else []
