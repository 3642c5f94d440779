"""
Mock collaborators and data builders for Interview Engine testing.

Deterministic in-memory stand-ins for the evaluator, follow-up/depth/question
generators, narrator, speech I/O and persistence, plus question factories and
a session builder wired with them.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace
from typing import Any, Optional

from interview_engine.models import (
    EvaluationResult,
    FollowupTone,
    IdealAnswer,
    InterviewType,
    Question,
    QuestionCategory,
    SessionRecord,
)
from interview_engine.output import JsonSessionStore, SessionRecordStore
from interview_engine.proctoring import ProctoringMonitor
from interview_engine.pubsub import SessionEventPublisher
from interview_engine.session import InterviewSession, SessionSettings
from interview_service import settings_from_spec


# =============================================================================
# Question Content
# =============================================================================

TECHNICAL_QUESTION_TEXTS = [
    "Explain how a hash map handles collisions.",
    "What is the difference between a process and a thread?",
    "How does a database index speed up reads?",
    "Describe how TCP guarantees ordered delivery.",
    "What problem does consistent hashing solve?",
    "How would you detect a memory leak in a long-running service?",
    "Explain eventual consistency with an example.",
    "What is backpressure in a streaming system?",
]

STRONG_ANSWER = (
    "A hash map buckets keys by hash and resolves collisions with chaining or "
    "open addressing, resizing when the load factor grows."
)
WEAK_ANSWER = "I don't know."


# =============================================================================
# Question Factories
# =============================================================================

def make_question(
    question_id: str,
    text: Optional[str] = None,
    category: QuestionCategory = QuestionCategory.TECHNICAL,
    ideal_answer: Optional[str] = "Reference answer.",
    topic_id: Optional[str] = None,
) -> Question:
    """Build a staged main question."""
    return Question(
        id=question_id,
        text=text or f"Question {question_id}?",
        category=category,
        ideal_answer=ideal_answer,
        topic_id=topic_id,
    )


def technical_questions(count: int, ideal_answer: Optional[str] = "Reference answer.") -> list[Question]:
    """``count`` technical questions with ids t1..tN."""
    return [
        make_question(
            f"t{i}",
            TECHNICAL_QUESTION_TEXTS[(i - 1) % len(TECHNICAL_QUESTION_TEXTS)],
            ideal_answer=ideal_answer,
        )
        for i in range(1, count + 1)
    ]


def technical_interview_questions() -> list[Question]:
    """Intro, two technical questions, outro."""
    return [
        make_question(
            "intro",
            "Tell me about yourself.",
            category=QuestionCategory.NON_TECHNICAL,
            ideal_answer=None,
        ),
        make_question("t1", TECHNICAL_QUESTION_TEXTS[0]),
        make_question("t2", TECHNICAL_QUESTION_TEXTS[1]),
        make_question(
            "outro",
            "Do you have any questions for us?",
            category=QuestionCategory.NON_TECHNICAL,
            ideal_answer=None,
        ),
    ]


def behavioral_interview_questions() -> list[Question]:
    """Four rubric-scored behavioral questions."""
    texts = {
        "hr_intro": "Tell me about yourself.",
        "hr_conflict": "Describe a disagreement with a teammate.",
        "hr_failure": "Tell me about a project that failed.",
        "hr_outro": "Anything else you'd like to add?",
    }
    return [
        make_question(
            qid,
            text,
            category=QuestionCategory.NON_TECHNICAL,
            ideal_answer="Rubric: specific, reflective, owns the outcome.",
        )
        for qid, text in texts.items()
    ]


def generated_question_dicts() -> list[dict[str, Any]]:
    """Raw output shaped like the question generator's."""
    return [
        {"text": "Tell me about yourself.", "category": "non-technical"},
        {"text": TECHNICAL_QUESTION_TEXTS[0], "category": "technical"},
        {"text": TECHNICAL_QUESTION_TEXTS[1], "category": "technical"},
        {"text": TECHNICAL_QUESTION_TEXTS[2], "category": "technical"},
        {"text": "Do you have any questions for us?", "category": "non-technical"},
    ]


# =============================================================================
# Fake Collaborators
# =============================================================================

class FakeEvaluator:
    """
    Scores by question id; ideal answers are derived from the question text.

    Args:
        scores: question id -> score (None means "unparseable").
        default_score: Score for ids not in ``scores``.
        ideal_delays: question text -> seconds to stall ideal-answer generation.
        evaluate_delay: Seconds to stall every evaluation.
        fail: Raise from every call.
    """

    def __init__(
        self,
        scores: Optional[dict[str, Optional[float]]] = None,
        default_score: float = 50.0,
        ideal_delays: Optional[dict[str, float]] = None,
        evaluate_delay: float = 0.0,
        fail: bool = False,
    ) -> None:
        self.scores = dict(scores or {})
        self.default_score = default_score
        self.ideal_delays = dict(ideal_delays or {})
        self.evaluate_delay = evaluate_delay
        self.fail = fail
        self.evaluated: list[str] = []
        self.ideal_requests: list[str] = []

    async def evaluate(
        self,
        question: Question,
        ideal_answer_or_criteria: str,
        candidate_answer: str,
    ) -> Optional[EvaluationResult]:
        self.evaluated.append(question.id)
        if self.evaluate_delay:
            await asyncio.sleep(self.evaluate_delay)
        if self.fail:
            raise RuntimeError("evaluator unavailable")
        score = self.scores.get(question.id, self.default_score)
        if score is None:
            return None
        return EvaluationResult(score=score, reason=f"Scored {score:.0f}")

    async def generate_ideal_answer(self, question_text: str) -> Optional[IdealAnswer]:
        self.ideal_requests.append(question_text)
        delay = self.ideal_delays.get(question_text)
        if delay:
            await asyncio.sleep(delay)
        if self.fail:
            raise RuntimeError("evaluator unavailable")
        return IdealAnswer(
            ideal_answer=f"Ideal: {question_text}",
            sources=["https://docs.example.com/reference"],
        )


class FakeFollowupGenerator:
    def __init__(self, text: Optional[str] = None) -> None:
        self.text = text
        self.calls: list[tuple[str, FollowupTone]] = []

    async def generate_followup(
        self,
        question_text: str,
        candidate_answer: str,
        tone: FollowupTone,
    ) -> Optional[str]:
        self.calls.append((question_text, tone))
        return self.text or f"Follow-up ({tone.value}): {question_text}"


class FakeDepthGenerator:
    """Returns medium/hard variants, or nothing for texts listed in ``skip``."""

    def __init__(self, skip: tuple[str, ...] = ()) -> None:
        self.calls: list[str] = []
        self.skip = skip

    async def generate_depth_questions(
        self,
        question_text: str,
        ideal_answer: str,
    ) -> Optional[dict[str, str]]:
        self.calls.append(question_text)
        if question_text in self.skip:
            return None
        return {
            "medium": f"Medium: {question_text}",
            "hard": f"Hard: {question_text}",
        }


class FakeQuestionGenerator:
    def __init__(
        self,
        questions: Optional[list[dict[str, Any]]] = None,
        closing: Optional[str] = "Thanks for your time, it was great talking with you.",
        fail: bool = False,
    ) -> None:
        self.questions = questions if questions is not None else generated_question_dicts()
        self.fail = fail
        self.closing = closing
        self.contexts: list[dict[str, Any]] = []
        self.closing_calls = 0

    async def generate_questions(
        self,
        interview_type: InterviewType,
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        self.contexts.append(context)
        if self.fail:
            raise RuntimeError("question generator unavailable")
        return list(self.questions)

    async def generate_closing_message(
        self,
        candidate_name: str,
        transcript: list[dict[str, Any]],
    ) -> Optional[str]:
        self.closing_calls += 1
        return self.closing


class FakeNarrator:
    def __init__(self) -> None:
        self.synthesized: list[str] = []
        self.released: list[str] = []

    async def synthesize(self, text: str) -> Optional[str]:
        self.synthesized.append(text)
        return f"audio://{len(self.synthesized)}"

    async def release(self, handles: list[str]) -> None:
        self.released.extend(handles)


class FakeSpeech:
    """SpeechOutput and SpeechInput in one object."""

    def __init__(self) -> None:
        self.played: list[tuple[str, Optional[str]]] = []
        self.listening = False
        self.listen_starts = 0
        self.stops = 0

    async def play(self, text: str, audio_ref: Optional[str]) -> None:
        self.played.append((text, audio_ref))

    async def stop(self) -> None:
        self.stops += 1

    async def start_listening(self) -> None:
        self.listening = True
        self.listen_starts += 1

    async def stop_listening(self) -> None:
        self.listening = False


class RecordingPersistence:
    """Persistence collaborator that records every call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    async def record_answer(
        self,
        question_id: str,
        answer: str,
        evaluation: Optional[EvaluationResult],
    ) -> None:
        self.calls.append(("answer", question_id, evaluation.score if evaluation else None))

    async def insert_question(self, question: Question, insert_after_id: Optional[str] = None) -> None:
        self.calls.append(("insert", question.id, insert_after_id))

    async def delete_question(self, question_id: str) -> None:
        self.calls.append(("delete", question_id))

    async def mark_chunk_ready(self, chunk_index: int) -> None:
        self.calls.append(("chunk_ready", chunk_index))

    def of(self, kind: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == kind]


class FlakyStore(SessionRecordStore):
    """
    In-memory store that raises OSError once per listed question id or chunk.

    Args:
        fail_answers: Question ids whose first record_answer fails.
        fail_chunks: Chunk indexes whose first mark_chunk_ready fails.
    """

    def __init__(
        self,
        record: SessionRecord,
        fail_answers: tuple[str, ...] = (),
        fail_chunks: tuple[int, ...] = (),
    ) -> None:
        super().__init__(record)
        self.fail_answers = set(fail_answers)
        self.fail_chunks = set(fail_chunks)
        self.ready_order: list[int] = []

    async def record_answer(
        self,
        question_id: str,
        answer: str,
        evaluation: Optional[EvaluationResult],
    ) -> None:
        if question_id in self.fail_answers:
            self.fail_answers.discard(question_id)
            raise OSError("No space left on device")
        await super().record_answer(question_id, answer, evaluation)

    async def mark_chunk_ready(self, chunk_index: int) -> None:
        if chunk_index in self.fail_chunks:
            self.fail_chunks.discard(chunk_index)
            raise OSError("No space left on device")
        self.ready_order.append(chunk_index)
        await super().mark_chunk_ready(chunk_index)


# =============================================================================
# Session Builder
# =============================================================================

FAST_SETTINGS = SessionSettings(
    pause_window_seconds=0.05,
    chunk_size=5,
    collaborator_timeout=2.0,
    narration_timeout=2.0,
    playback_timeout=2.0,
    chunk_wait_seconds=0.05,
    chunk_wait_attempts=3,
)


def make_record(
    session_id: str = "sess_test",
    interview_type: InterviewType = InterviewType.TECHNICAL,
) -> SessionRecord:
    return SessionRecord(
        session_id=session_id,
        interview_id=f"{interview_type.value}-test",
        interview_type=interview_type,
        candidate_name="Sarah Chen",
    )


def build_session(
    interview_type: InterviewType = InterviewType.TECHNICAL,
    *,
    evaluator: Optional[FakeEvaluator] = None,
    followup_generator: Optional[FakeFollowupGenerator] = None,
    question_generator: Optional[FakeQuestionGenerator] = None,
    depth_generator: Optional[FakeDepthGenerator] = None,
    narrator: Optional[FakeNarrator] = None,
    speech: Optional[FakeSpeech] = None,
    proctoring: Optional[ProctoringMonitor] = None,
    depth_enabled: bool = True,
    settings: SessionSettings = FAST_SETTINGS,
    publisher: Optional[SessionEventPublisher] = None,
    store: Optional[SessionRecordStore] = None,
    session_id: str = "sess_test",
    on_complete=None,
) -> InterviewSession:
    """InterviewSession wired entirely with fakes."""
    speech = speech or FakeSpeech()
    return InterviewSession(
        session_id,
        interview_type,
        store=store or SessionRecordStore(make_record(session_id, interview_type)),
        evaluator=evaluator or FakeEvaluator(),
        followup_generator=followup_generator or FakeFollowupGenerator(),
        question_generator=question_generator or FakeQuestionGenerator(),
        depth_generator=depth_generator,
        narrator=narrator,
        speech_output=speech,
        speech_input=speech,
        proctoring=proctoring,
        depth_enabled=depth_enabled,
        settings=settings,
        publisher=publisher or SessionEventPublisher(),
        on_complete=on_complete,
        rng=random.Random(7),
    )


async def answer(session: InterviewSession, text: str) -> bool:
    """Speak ``text`` as one final fragment and submit it."""
    session.on_transcript(text, is_final=True)
    return await session.submit()


def fake_session_factory(
    evaluator: Optional[FakeEvaluator] = None,
    generated: Optional[list[dict[str, Any]]] = None,
):
    """Service session factory wiring fakes in place of the LLM and narration adapters."""

    def factory(session_id, spec, request, state, on_complete):
        record = SessionRecord(
            session_id=session_id,
            interview_id=spec.interview_id,
            interview_type=spec.interview_type,
            candidate_name=request.candidate_name,
        )
        settings = replace(
            settings_from_spec(spec),
            pause_window_seconds=30.0,
            duration_minutes=None,
            chunk_wait_seconds=0.05,
            chunk_wait_attempts=2,
        )
        return build_session(
            spec.interview_type,
            evaluator=evaluator or FakeEvaluator(),
            question_generator=FakeQuestionGenerator(questions=generated),
            depth_generator=FakeDepthGenerator() if spec.depth_enabled else None,
            proctoring=ProctoringMonitor(enabled=spec.proctoring_enabled),
            depth_enabled=spec.depth_enabled,
            settings=settings,
            publisher=state["publisher"],
            store=JsonSessionStore(record, state["output_dir"]),
            session_id=session_id,
            on_complete=on_complete,
        )

    return factory
