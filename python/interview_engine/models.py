"""
Pydantic models for the Interview Engine.

Defines the question entity, the four-queue session state (Q0 signal gate,
Q1 main, Q2 depth pool, Q3 follow-ups), evaluation results, proctoring
signals and the persisted session record.

Last Grunted: 10/19/2026
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO 8601 string with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class QuestionStateError(Exception):
    """Raised when a question is mutated after it has been asked."""

    def __init__(self, question_id: str, field_name: str, reason: str) -> None:
        self.question_id = question_id
        self.field_name = field_name
        super().__init__(f"Question {question_id}: cannot set '{field_name}' ({reason})")


class InterviewType(str, Enum):
    """Interview flavours supported by the engine."""

    TECHNICAL = "technical"
    BEHAVIORAL = "behavioral"


class QuestionCategory(str, Enum):
    TECHNICAL = "technical"
    NON_TECHNICAL = "non-technical"
    FOLLOWUP = "followup"
    INTERRUPTION = "interruption"


class Difficulty(str, Enum):
    MEDIUM = "medium"
    HARD = "hard"


class QueueOrigin(str, Enum):
    """Queue a question belonged to when it was staged or served."""

    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"


class RouteAction(str, Enum):
    """
    Routing directive attached to an evaluation.

    Technical interviews use NEXT_DIFFICULTY / NORMAL_FLOW / FOLLOWUP,
    behavioral interviews use FOLLOWUP_NEGATIVE / NORMAL_FLOW / FOLLOWUP_POSITIVE.
    """

    NEXT_DIFFICULTY = "next_difficulty"
    NORMAL_FLOW = "normal_flow"
    FOLLOWUP = "followup"
    FOLLOWUP_NEGATIVE = "followup_negative"
    FOLLOWUP_POSITIVE = "followup_positive"


class FollowupTone(str, Enum):
    CORRECTIVE = "corrective"
    PROBING = "probing"


class SessionOutcome(str, Enum):
    """How an interview session ended."""

    COMPLETED = "completed"
    CANDIDATE_REQUESTED_END = "candidate_requested_end"
    TIME_EXPIRED = "time_expired"
    TERMINATED_FOR_CAUSE = "terminated_for_cause"
    CANDIDATE_LEFT = "candidate_left"


class EvaluationResult(BaseModel):
    """
    Structured result of scoring one candidate answer.

    Example:
        >>> EvaluationResult(score=85, reason="Covers indexing and tradeoffs",
        ...                  route_action=RouteAction.NEXT_DIFFICULTY)
    """

    score: float = Field(..., ge=0.0, le=100.0, description="Correctness 0-100")
    reason: str = Field(default="", description="Short justification from the evaluator")
    route_action: RouteAction = Field(
        default=RouteAction.NORMAL_FLOW,
        description="Evaluator's routing suggestion (informational; score bands decide)",
    )


class IdealAnswer(BaseModel):
    """Ideal answer (technical) or rubric (behavioral) produced for a question."""

    ideal_answer: str = ""
    sources: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.ideal_answer.strip()


_WRITE_ONCE_FIELDS = frozenset({"candidate_answer", "evaluation"})
_POST_ASK_FIELDS = _WRITE_ONCE_FIELDS | {"asked_at"}


class Question(BaseModel):
    """
    One interview prompt.

    A question may be enriched freely while staged. Once ``asked_at`` is set it
    becomes immutable, except for ``candidate_answer`` and ``evaluation`` which
    are each written exactly once.

    Example:
        >>> q = Question(id="q_1", text="Explain database indexing.",
        ...              category=QuestionCategory.TECHNICAL, topic_id="q_1")
        >>> q.topic_key
        'q_1:base'
    """

    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    category: QuestionCategory
    difficulty: Optional[Difficulty] = None
    ideal_answer: Optional[str] = Field(
        default=None,
        description="Ideal answer, rubric string or puzzle solution",
    )
    reference_sources: list[str] = Field(default_factory=list)
    topic_id: Optional[str] = None
    parent_question_id: Optional[str] = None
    queue_origin: Optional[QueueOrigin] = None
    narrated_audio_ref: Optional[str] = None
    chunk_index: Optional[int] = Field(default=None, ge=0)
    trigger: Optional[str] = Field(
        default=None,
        description="What produced a dynamic question, e.g. 'mood:anxious' or 'score'",
    )
    asked_at: Optional[str] = None
    candidate_answer: Optional[str] = None
    evaluation: Optional[EvaluationResult] = None
    proctoring_snapshot: Optional[dict[str, Any]] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _WRITE_ONCE_FIELDS:
            if self.asked_at is None:
                raise QuestionStateError(self.id, name, "question has not been asked")
            if getattr(self, name) is not None:
                raise QuestionStateError(self.id, name, "already written")
        elif self.asked_at is not None and name not in _POST_ASK_FIELDS:
            raise QuestionStateError(self.id, name, "question already asked")
        elif name == "asked_at" and self.asked_at is not None:
            raise QuestionStateError(self.id, name, "already asked")
        super().__setattr__(name, value)

    @property
    def is_asked(self) -> bool:
        return self.asked_at is not None

    @property
    def is_answered(self) -> bool:
        return bool(self.candidate_answer and self.candidate_answer.strip())

    @property
    def has_criteria(self) -> bool:
        """True when the question carries an ideal answer or rubric to score against."""
        return bool(self.ideal_answer and self.ideal_answer.strip())

    @property
    def topic_key(self) -> str:
        """
        De-duplication key.

        Depth siblings share ``topic_id`` with their base question, so the
        difficulty tier is part of the key; topic-less questions use their id.
        """
        if not self.topic_id:
            return self.id
        tier = self.difficulty.value if self.difficulty else "base"
        return f"{self.topic_id}:{tier}"

    def mark_asked(self, origin: Optional[QueueOrigin] = None) -> None:
        """Stamp ``asked_at`` (and the origin queue if not already known)."""
        if origin is not None and self.queue_origin is None:
            self.queue_origin = origin
        self.asked_at = utc_timestamp()


class ProctoringLog(BaseModel):
    """One observation from the webcam side channel."""

    timestamp: str = Field(default_factory=utc_timestamp)
    mood: Optional[str] = None
    gesture: Optional[str] = None
    objects: list[str] = Field(default_factory=list)
    violation_type: Optional[str] = None


class ProctoringSignal(BaseModel):
    """
    Value object handed to the orchestrator once per turn.

    ``mood_changed`` is True only on the poll that first observes a new
    non-neutral mood.
    """

    violation_count: int = Field(default=0, ge=0)
    mood_state: str = "neutral"
    mood_changed: bool = False
    current_violations: list[str] = Field(default_factory=list)
    recent_logs: list[ProctoringLog] = Field(default_factory=list)


class SignalGate(BaseModel):
    """Q0: the proctoring priority gate. Not a queue of questions."""

    enabled: bool = False
    violation_count: int = Field(default=0, ge=0)
    mood_state: str = "neutral"
    recent_logs: list[ProctoringLog] = Field(default_factory=list)


class QueueStats(BaseModel):
    questions_asked: int = 0
    q0_active: bool = False
    q1_size: int = 0
    q2_size: Optional[int] = None
    q3_size: int = 0
    violation_count: int = 0


class QueueSet(BaseModel):
    """
    Mutable queue state for one session.

    ``q2`` is None when the interview type has no depth tier.
    """

    q0_signal: SignalGate = Field(default_factory=SignalGate)
    q1: list[Question] = Field(default_factory=list)
    q2: Optional[list[Question]] = None
    q3: list[Question] = Field(default_factory=list)

    def stats(self, questions_asked: int = 0) -> QueueStats:
        return QueueStats(
            questions_asked=questions_asked,
            q0_active=self.q0_signal.enabled,
            q1_size=len(self.q1),
            q2_size=len(self.q2) if self.q2 is not None else None,
            q3_size=len(self.q3),
            violation_count=self.q0_signal.violation_count,
        )


class SessionRecord(BaseModel):
    """
    Durable record of one interview session.

    ``questions`` is ordered: staged and asked questions in served order, with
    follow-ups inserted right after the question that spawned them.
    """

    session_id: str = Field(..., description="Unique session identifier")
    interview_id: str = Field(..., description="Interview configuration this session runs")
    interview_type: InterviewType
    candidate_name: str = Field(default="Candidate")
    started_at: str = Field(default_factory=utc_timestamp)
    ended_at: Optional[str] = None
    outcome: Optional[SessionOutcome] = None
    closing_message: Optional[str] = None
    questions: list[Question] = Field(default_factory=list)
    ready_chunks: list[int] = Field(default_factory=list)

    def find(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    def index_of(self, question_id: str) -> int:
        return next(
            (i for i, q in enumerate(self.questions) if q.id == question_id),
            -1,
        )

    @property
    def answered(self) -> list[Question]:
        return [q for q in self.questions if q.is_answered]

    @property
    def average_score(self) -> Optional[float]:
        scores = [q.evaluation.score for q in self.questions if q.evaluation is not None]
        if not scores:
            return None
        return sum(scores) / len(scores)
