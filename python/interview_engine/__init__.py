"""
Interview Engine Package.

Orchestrates automated voice interviews: a priority queue model (Q0 proctoring
gate, Q1 main, Q2 depth, Q3 follow-ups), a turn-taking state machine, score
driven queue mutation rules and chunked background preprocessing.

Components:
    - InterviewSession: Turn-taking state machine for one candidate
    - QueueOrchestrator: Priority scheduler and sole owner of the queues
    - decide: Pure flow-rule score banding
    - ChunkPreprocessor: Background ideal-answer / audio / depth preparation
    - ProctoringMonitor: Violation and mood side channel
    - InterviewLlmAgent: OpenAI Agents SDK collaborator adapter
    - OpenAiNarrator: Pre-rendered question audio
    - SessionRecordStore / JsonSessionStore: Ordered session record persistence
    - SessionEventPublisher: Real-time pub/sub of engine events

Example:
    >>> from interview_engine import InterviewSession, InterviewType, SessionRecord, SessionRecordStore
    >>>
    >>> record = SessionRecord(session_id="sess_1", interview_id="backend",
    ...                        interview_type=InterviewType.TECHNICAL)
    >>> session = InterviewSession("sess_1", InterviewType.TECHNICAL,
    ...                            store=SessionRecordStore(record), evaluator=agent)
    >>> await session.start(consent=True, questions=questions)
    >>> await session.begin()

Last Grunted: 10/19/2026
"""

from .models import (
    Difficulty,
    EvaluationResult,
    FollowupTone,
    IdealAnswer,
    InterviewType,
    ProctoringLog,
    ProctoringSignal,
    Question,
    QuestionCategory,
    QuestionStateError,
    QueueOrigin,
    QueueSet,
    QueueStats,
    RouteAction,
    SessionOutcome,
    SessionRecord,
    SignalGate,
)

from .flow_rules import FlowDecision, Promotion, decide

from .orchestrator import QueueOrchestrator

from .preprocessing import ChunkPreprocessor

from .proctoring import ProctoringMonitor

from .question_bank import arrange_main_questions, build_main_questions

from .output import JsonSessionStore, SessionRecordStore, SessionStoreError

from .pubsub import (
    EngineEvent,
    EventType,
    SessionEventPublisher,
    get_publisher,
    reset_publisher,
)

from .session import (
    ConsentRequiredError,
    InterviewSession,
    Screen,
    SessionSettings,
    SessionStartError,
    SessionStateError,
    TurnPhase,
)

from .agent import InterviewLlmAgent

from .narration import OpenAiNarrator


__all__ = [
    # Models
    "Difficulty",
    "EvaluationResult",
    "FollowupTone",
    "IdealAnswer",
    "InterviewType",
    "ProctoringLog",
    "ProctoringSignal",
    "Question",
    "QuestionCategory",
    "QuestionStateError",
    "QueueOrigin",
    "QueueSet",
    "QueueStats",
    "RouteAction",
    "SessionOutcome",
    "SessionRecord",
    "SignalGate",
    # Flow rules
    "FlowDecision",
    "Promotion",
    "decide",
    # Scheduling
    "QueueOrchestrator",
    "ChunkPreprocessor",
    "ProctoringMonitor",
    "arrange_main_questions",
    "build_main_questions",
    # Persistence
    "JsonSessionStore",
    "SessionRecordStore",
    "SessionStoreError",
    # Pub/Sub
    "EngineEvent",
    "EventType",
    "SessionEventPublisher",
    "get_publisher",
    "reset_publisher",
    # Session
    "ConsentRequiredError",
    "InterviewSession",
    "Screen",
    "SessionSettings",
    "SessionStartError",
    "SessionStateError",
    "TurnPhase",
    # Adapters
    "InterviewLlmAgent",
    "OpenAiNarrator",
]
