from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

INSTRUCTION_MODES = {
    "introduction": (
        "INTRODUCTION session: Focus on context for NEW_TEST_WORDS. "
        "Build strong first impressions."
    ),
    "reinforcement": (
        "REINFORCEMENT session: Prioritize HARD_REVIEW_WORDS to cement long-term memory."
    ),
}

DEFAULT_PASSAGE_TEMPLATE = """Generate a story in {{LANGUAGE_CODE}} at {{USER_LEVEL}} level, written as a {{TARGET_STYLE}}.
{{FORMULA_INSTRUCTION}}
Include these review words (HARD_REVIEW_WORDS): {{REVIEW_WORDS_LIST}}.
Include these new words (NEW_TEST_WORDS): {{NEW_WORDS_LIST}}.
Output ONLY JSON: { "passage": "...", "glossary": {} } where glossary ONLY contains NEW_TEST_WORDS definitions."""


@dataclass(frozen=True)
class PromptParams:
    language: str
    level: str
    mode: str
    review_words: list[str]
    target_words: list[str]
    style: str = "narrative"


def load_template(path: Path | None) -> str:
    if path is not None and path.is_file():
        logger.info("using custom passage prompt from {}", path)
        return path.read_text(encoding="utf-8")
    return DEFAULT_PASSAGE_TEMPLATE


def render_prompt(template: str, params: PromptParams) -> str:
    mapping = {
        "LANGUAGE_CODE": params.language,
        "USER_LEVEL": params.level,
        "TARGET_STYLE": params.style,
        "FORMULA_INSTRUCTION": INSTRUCTION_MODES.get(params.mode, INSTRUCTION_MODES["introduction"]),
        "REVIEW_WORDS_LIST": word_list(params.review_words),
        "NEW_WORDS_LIST": word_list(params.target_words),
    }
    rendered = template
    for key, value in mapping.items():
        rendered = rendered.replace("{{" + key + "}}", value)
    return rendered


def word_list(words: list[str]) -> str:
    return ", ".join(words) or "None"
