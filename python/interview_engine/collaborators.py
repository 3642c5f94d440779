"""
Collaborator contracts consumed by the interview engine.

Every external dependency (LLM evaluation, follow-up and question generation,
narration, speech I/O, persistence) is expressed as an async
Protocol so the engine can be driven by real adapters or test fakes.

Calls into collaborators go through ``call_with_timeout`` which fails
closed: timeouts and exceptions are logged and replaced by a default.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional, Protocol, TypeVar

from .models import (
    EvaluationResult,
    FollowupTone,
    IdealAnswer,
    InterviewType,
    Question,
)


__all__ = [
    "DepthQuestionGenerator",
    "Evaluator",
    "FollowupGenerator",
    "Narrator",
    "Persistence",
    "QuestionGenerator",
    "SpeechInput",
    "SpeechOutput",
    "call_with_timeout",
]


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Evaluator(Protocol):
    """Scores answers and produces ideal answers / rubrics."""

    async def evaluate(
        self,
        question: Question,
        ideal_answer_or_criteria: str,
        candidate_answer: str,
    ) -> Optional[EvaluationResult]:
        """Return a structured score, or None when no parseable result exists."""

    async def generate_ideal_answer(self, question_text: str) -> Optional[IdealAnswer]:
        """Return an ideal answer with sources, or None."""


class FollowupGenerator(Protocol):
    async def generate_followup(
        self,
        question_text: str,
        candidate_answer: str,
        tone: FollowupTone,
    ) -> Optional[str]:
        """Return follow-up question text, or None."""


class DepthQuestionGenerator(Protocol):
    async def generate_depth_questions(
        self,
        question_text: str,
        ideal_answer: str,
    ) -> Optional[dict[str, str]]:
        """Return ``{"medium": text, "hard": text}`` (either key may be missing)."""


class QuestionGenerator(Protocol):
    """Produces the main question list and the closing remark."""

    async def generate_questions(
        self,
        interview_type: InterviewType,
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Return raw question dicts with at least ``text`` and ``category``."""

    async def generate_closing_message(
        self,
        candidate_name: str,
        transcript: list[dict[str, Any]],
    ) -> Optional[str]:
        ...


class Narrator(Protocol):
    async def synthesize(self, text: str) -> Optional[str]:
        """Return an audio handle, or None to request live narration."""

    async def release(self, handles: list[str]) -> None:
        """Delete stored audio for the given handles."""


class SpeechOutput(Protocol):
    """Plays prompts to the candidate."""

    async def play(self, text: str, audio_ref: Optional[str]) -> None:
        """Play pre-rendered audio, or narrate ``text`` live when ``audio_ref`` is None."""

    async def stop(self) -> None:
        ...


class SpeechInput(Protocol):
    """Controls the live transcription stream."""

    async def start_listening(self) -> None:
        ...

    async def stop_listening(self) -> None:
        ...


class Persistence(Protocol):
    """Durable mirror of queue and question mutations."""

    async def record_answer(
        self,
        question_id: str,
        answer: str,
        evaluation: Optional[EvaluationResult],
    ) -> None:
        ...

    async def insert_question(self, question: Question, insert_after_id: Optional[str] = None) -> None:
        ...

    async def delete_question(self, question_id: str) -> None:
        ...

    async def mark_chunk_ready(self, chunk_index: int) -> None:
        ...


async def call_with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    default: T,
    label: str,
) -> T:
    """
    Await a collaborator call with a deadline, failing closed.

    Args:
        awaitable: The collaborator coroutine.
        timeout: Seconds to wait before giving up.
        default: Value returned on timeout or error.
        label: Short name used in log lines.

    Returns:
        The collaborator result, or ``default``.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs; using fallback", label, timeout)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - collaborator failures never propagate
        logger.warning("%s failed: %s; using fallback", label, exc)
    return default
