from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from syntagma.config import DEFAULT_LANGUAGE


class PriorState(BaseModel):
    step: int = Field(ge=0, le=8)
    interval_days: float = Field(ge=0)
    next_review_at: str
    status: str | None = None
    successful_reads: int = Field(default=0, ge=0)
    lookup_count: int = Field(default=0, ge=0)
    is_target: bool = False
    target_order: int | None = None


class PassWordsRequest(BaseModel):
    words: list[str] = Field(default_factory=list)
    language: str = Field(default=DEFAULT_LANGUAGE)


class LookupRequest(BaseModel):
    word: str
    language: str = Field(default=DEFAULT_LANGUAGE)


class UndoLookupRequest(BaseModel):
    word: str
    language: str = Field(default=DEFAULT_LANGUAGE)
    prior_state: PriorState | None = None


class BulkActionRequest(BaseModel):
    words: list[str] = Field(default_factory=list)
    action: Literal["delete", "reset"]
    language: str = Field(default=DEFAULT_LANGUAGE)


class ResetWordRequest(BaseModel):
    word: str
    reset_type: Literal["delete", "reset"] = "reset"
    language: str = Field(default=DEFAULT_LANGUAGE)


class ImportWordsRequest(BaseModel):
    words: list[str] = Field(default_factory=list)
    language: str = Field(default=DEFAULT_LANGUAGE)
    make_target_list: bool = False
    make_due_now: bool = False


class SaveSessionRequest(BaseModel):
    passage: str
    looked_up_words: list[str] = Field(default_factory=list)
    language: str = Field(default=DEFAULT_LANGUAGE)


class GeneratePassageRequest(BaseModel):
    language: str = Field(default=DEFAULT_LANGUAGE)
    level: str = Field(default="A2")
