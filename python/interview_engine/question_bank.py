"""
Initial Q1 construction.

Turns a raw list of generated questions into the session's main queue: the
intro pinned first, the outro pinned last, non-technical questions in the
middle capped at 20% of that section, and the middle shuffled.

Kept apart from the scheduler; the orchestrator only ever sees the result.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Optional, Sequence

from .models import Question, QuestionCategory


__all__ = [
    "DEFAULT_INTRO_TEXT",
    "DEFAULT_OUTRO_TEXT",
    "NON_TECHNICAL_CAP",
    "arrange_main_questions",
    "build_main_questions",
]


logger = logging.getLogger(__name__)

DEFAULT_INTRO_TEXT = "Tell me about yourself and your background."
DEFAULT_OUTRO_TEXT = (
    "Do you have any questions for us, or is there anything else you'd like to add?"
)
NON_TECHNICAL_CAP = 0.2

_INTRO_MARKERS = ("tell me about yourself", "introduce yourself")
_OUTRO_MARKERS = ("any questions for", "anything else")


def _matches(question: Question, markers: Sequence[str]) -> bool:
    text = question.text.lower()
    return any(marker in text for marker in markers)


def _is_non_technical(question: Question) -> bool:
    return question.category == QuestionCategory.NON_TECHNICAL


def arrange_main_questions(
    questions: Sequence[Question],
    rng: Optional[random.Random] = None,
    id_prefix: str = "q",
) -> list[Question]:
    """
    Order questions for Q1.

    Args:
        questions: Candidate questions in generation order.
        rng: Random source for the middle shuffle (seed it for tests).
        id_prefix: Prefix for synthesized intro/outro ids.

    Returns:
        New ordered list: intro, shuffled middle, outro. Empty when there
        are no questions; defaults are never synthesized from nothing.
    """
    if not questions:
        return []
    rng = rng or random.Random()
    pool = list(questions)

    intro = next((q for q in pool if _matches(q, _INTRO_MARKERS)), None)
    if intro is None:
        intro = next((q for q in pool if _is_non_technical(q)), None)
    if intro is not None:
        pool.remove(intro)
    else:
        intro = Question(
            id=f"{id_prefix}_intro",
            text=DEFAULT_INTRO_TEXT,
            category=QuestionCategory.NON_TECHNICAL,
        )

    outro = next((q for q in pool if _matches(q, _OUTRO_MARKERS)), None)
    if outro is None:
        non_technical = [q for q in pool if _is_non_technical(q)]
        # The last non-technical becomes the outro only when another one stays in the middle
        if len(non_technical) > 1:
            outro = non_technical[-1]
    if outro is not None:
        pool.remove(outro)
    else:
        outro = Question(
            id=f"{id_prefix}_outro",
            text=DEFAULT_OUTRO_TEXT,
            category=QuestionCategory.NON_TECHNICAL,
        )

    technical = [q for q in pool if not _is_non_technical(q)]
    non_technical = [q for q in pool if _is_non_technical(q)]
    cap = math.floor(len(pool) * NON_TECHNICAL_CAP)
    if len(non_technical) > cap:
        logger.info(
            "Dropping %d non-technical questions over the %d cap",
            len(non_technical) - cap,
            cap,
        )
    middle = technical + non_technical[:cap]
    rng.shuffle(middle)

    return [intro, *middle, outro]


def build_main_questions(
    raw_questions: Sequence[dict[str, Any]],
    rng: Optional[random.Random] = None,
    id_prefix: str = "q",
) -> list[Question]:
    """
    Validate raw generator output into Questions and arrange them.

    Entries without text are skipped. Unknown categories default to technical.
    Returns an empty list when nothing usable was generated.
    """
    parsed: list[Question] = []
    for index, raw in enumerate(raw_questions, start=1):
        text = str(raw.get("text") or raw.get("question") or "").strip()
        if not text:
            logger.warning("Skipping generated question %d with no text", index)
            continue
        category_raw = str(raw.get("category") or QuestionCategory.TECHNICAL.value)
        try:
            category = QuestionCategory(category_raw)
        except ValueError:
            category = QuestionCategory.TECHNICAL
        parsed.append(
            Question(
                id=str(raw.get("id") or f"{id_prefix}_{index}"),
                text=text,
                category=category,
                ideal_answer=raw.get("ideal_answer"),
                topic_id=raw.get("topic_id"),
            )
        )
    if not parsed:
        logger.warning("Question generator returned no usable questions")
        return []
    return arrange_main_questions(parsed, rng=rng, id_prefix=id_prefix)
