from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from loguru import logger


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DB_PATH = Path(os.getenv("SYNTAGMA_DB_PATH", str(PROJECT_ROOT / "syntagma.db")))
PROMPT_TEMPLATE_PATH = Path(os.getenv("SYNTAGMA_PROMPT_PATH", str(PROJECT_ROOT / "master_prompt.txt")))
LOG_LEVEL = os.getenv("SYNTAGMA_LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "3000"))

# Single-learner deployment.
LEARNER_ID = "00000000-0000-0000-0000-000000000001"
DEFAULT_LANGUAGE = "es"
TRANSLATION_TARGET_LANGUAGE = "en"
TRANSLATION_UNAVAILABLE = "Translation unavailable."


@dataclass(frozen=True)
class PassageLimits:
    review_words: int = 60
    target_words: int = 30
    reduced_target_words: int = 15
    # Fewer due words than this leaves room for the full target list.
    target_threshold: int = 30


def configure_logging(level: str = LOG_LEVEL) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
