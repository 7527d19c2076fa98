from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from syntagma.api.schemas import (
    BulkActionRequest,
    GeneratePassageRequest,
    ImportWordsRequest,
    LookupRequest,
    PassWordsRequest,
    ResetWordRequest,
    SaveSessionRequest,
    UndoLookupRequest,
)
from syntagma.config import DEFAULT_LANGUAGE, PROMPT_TEMPLATE_PATH, configure_logging
from syntagma.errors import PassageGenerationError, StorageError, ValidationError
from syntagma.learning import vocabulary
from syntagma.learning.passage import generate_passage
from syntagma.services.llm import LLMService
from syntagma.services.translation import TranslationService
from syntagma.storage.db import Database

UTC = timezone.utc

db = Database()
llm_service = LLMService()
translation_service = TranslationService()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    db.initialize()
    logger.info("database schema verified at {}", db.db_path)
    yield


app = FastAPI(title="Syntagma", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
    logger.error("storage failure: {}", exc)
    return JSONResponse(status_code=500, content={"ok": False, "detail": str(exc)})


def _now() -> datetime:
    return datetime.now(UTC)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/api/vocabulary")
def vocabulary_list(language: str = Query(default=DEFAULT_LANGUAGE)) -> dict:
    items = vocabulary.list_vocabulary(db, language=language, now=_now())
    return {"ok": True, "items": items}


@app.post("/api/words/pass")
def pass_words(req: PassWordsRequest) -> dict:
    advanced = vocabulary.pass_words(db, words=req.words, language=req.language, now=_now())
    return {"ok": True, "advanced": advanced}


@app.post("/api/words/lookup")
def lookup_word(req: LookupRequest) -> dict:
    try:
        result = vocabulary.lookup_word(
            db,
            translation_service,
            word=req.word,
            language=req.language,
            now=_now(),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, **result}


@app.post("/api/words/undo-lookup")
def undo_lookup(req: UndoLookupRequest) -> dict:
    try:
        vocabulary.undo_lookup(
            db,
            word=req.word,
            language=req.language,
            prior_state=req.prior_state.model_dump() if req.prior_state else None,
            now=_now(),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True}


@app.post("/api/words/bulk")
def bulk_action(req: BulkActionRequest) -> dict:
    try:
        changed = vocabulary.bulk_action(
            db,
            words=req.words,
            action=req.action,
            language=req.language,
            now=_now(),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "changed": changed}


@app.post("/api/words/reset")
def reset_word(req: ResetWordRequest) -> dict:
    try:
        changed = vocabulary.reset_word(
            db,
            word=req.word,
            reset_type=req.reset_type,
            language=req.language,
            now=_now(),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"ok": True, "changed": changed}


@app.post("/api/words/import")
def import_words(req: ImportWordsRequest) -> dict:
    imported = vocabulary.import_words(
        db,
        words=req.words,
        language=req.language,
        make_target_list=req.make_target_list,
        make_due_now=req.make_due_now,
        now=_now(),
    )
    return {"ok": True, "imported": imported}


@app.post("/api/session")
def save_session(req: SaveSessionRequest) -> dict:
    db.save_session(req.language, req.passage, req.looked_up_words)
    return {"ok": True}


@app.get("/api/session")
def load_session(language: str = Query(default=DEFAULT_LANGUAGE)) -> dict:
    session = db.load_session(language)
    if session is None:
        return {"ok": True, "passage": None, "looked_up_words": []}
    return {"ok": True, **session}


@app.post("/api/passage")
def passage(req: GeneratePassageRequest):
    try:
        result = generate_passage(
            db,
            llm_service,
            language=req.language,
            level=req.level,
            now=_now(),
            template_path=PROMPT_TEMPLATE_PATH,
        )
    except PassageGenerationError as exc:
        return JSONResponse(status_code=502, content={"ok": False, "detail": exc.message, "cause": exc.cause})
    return {"ok": True, **result}
