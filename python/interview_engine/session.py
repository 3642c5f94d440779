"""
Interview Session.

The turn-taking state machine for one candidate. Screens move
setup -> loading -> ready -> interview -> complete; inside "interview" each
question runs ask -> listen -> pause-detect -> submit -> evaluate -> route,
then loops back to ask.

The session owns the asyncio tasks of one interview (pause timer, deadline
timer, background chunk jobs) and never runs two turn cycles at once: a
submit already in flight turns any further submit into a no-op.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from .collaborators import (
    DepthQuestionGenerator,
    Evaluator,
    FollowupGenerator,
    Narrator,
    QuestionGenerator,
    SpeechInput,
    SpeechOutput,
    call_with_timeout,
)
from .models import (
    InterviewType,
    ProctoringSignal,
    Question,
    QueueOrigin,
    SessionOutcome,
)
from .orchestrator import QueueOrchestrator
from .output import SessionRecordStore
from .preprocessing import ChunkPreprocessor
from .proctoring import VIOLATION_LIMIT, ProctoringMonitor
from .pubsub import SessionEventPublisher, get_publisher
from .question_bank import build_main_questions


__all__ = [
    "CLOSING_MESSAGES",
    "ConsentRequiredError",
    "InterviewSession",
    "Screen",
    "SessionSettings",
    "SessionStartError",
    "SessionStateError",
    "TurnPhase",
]


logger = logging.getLogger(__name__)


# =============================================================================
# States and errors
# =============================================================================


class Screen(str, Enum):
    SETUP = "setup"
    LOADING = "loading"
    READY = "ready"
    INTERVIEW = "interview"
    COMPLETE = "complete"


class TurnPhase(str, Enum):
    """Sub-state of the interview screen."""

    IDLE = "idle"
    PREPARING = "preparing"
    ASKING = "asking"
    LISTENING = "listening"
    SUBMITTING = "submitting"
    EVALUATING = "evaluating"
    ROUTING = "routing"
    FINISHED = "finished"


class SessionStateError(Exception):
    """Raised when an operation is not allowed on the current screen."""

    def __init__(self, session_id: str, current: Screen, operation: str) -> None:
        self.session_id = session_id
        self.current = current
        self.operation = operation
        super().__init__(
            f"Session {session_id}: cannot {operation} while in '{current.value}'"
        )


class ConsentRequiredError(Exception):
    """Raised when a session is started without candidate consent."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id}: candidate consent is required to start")


class SessionStartError(Exception):
    """Raised when the initial question batch cannot be produced."""


CLOSING_MESSAGES: dict[SessionOutcome, str] = {
    SessionOutcome.COMPLETED: (
        "Thank you for your time today. That concludes our interview, "
        "and we'll be in touch about next steps."
    ),
    SessionOutcome.CANDIDATE_REQUESTED_END: (
        "Thank you for your time today. We'll end the interview here "
        "and be in touch about next steps."
    ),
    SessionOutcome.TERMINATED_FOR_CAUSE: (
        "This interview has been ended because repeated proctoring "
        "violations were detected."
    ),
    SessionOutcome.TIME_EXPIRED: (
        "We've reached the end of the allotted time. Thank you for your answers today."
    ),
    SessionOutcome.CANDIDATE_LEFT: "The interview ended because the candidate left.",
}


@dataclass(frozen=True)
class SessionSettings:
    """Timing and policy knobs for one session."""

    pause_window_seconds: float = 3.0
    chunk_size: int = 5
    duration_minutes: Optional[float] = None
    consent_required: bool = True
    collaborator_timeout: float = 30.0
    narration_timeout: float = 20.0
    playback_timeout: float = 120.0
    chunk_wait_seconds: float = 1.0
    chunk_wait_attempts: int = 60


CompletionCallback = Callable[["InterviewSession"], Awaitable[None]]


# =============================================================================
# Session
# =============================================================================


class InterviewSession:
    """
    One candidate's interview.

    Collaborators are injected; the session wires them into a
    QueueOrchestrator and a ChunkPreprocessor and drives the turn cycle.

    Args:
        session_id: Unique session identifier.
        interview_type: Technical or behavioral.
        store: Session record store (the Persistence collaborator).
        evaluator: Scores answers and writes ideal answers.
        followup_generator: Produces score-driven follow-ups.
        question_generator: Produces the main questions and closing remark.
        depth_generator: Produces Q2 depth siblings (technical only).
        narrator: Pre-renders question audio.
        speech_output: Plays prompts.
        speech_input: Controls live transcription.
        proctoring: Q0 side-channel monitor; None disables Q0.
        depth_enabled: Whether the Q2 tier is active.
        settings: Timing/policy settings.
        publisher: Event publisher (defaults to the global one).
        on_complete: Awaited once after the session reaches "complete".
        rng: Random source for Q1 construction.

    Example:
        >>> session = InterviewSession("sess_1", InterviewType.TECHNICAL, store=store, ...)
        >>> await session.start(consent=True)
        >>> await session.begin()
        >>> session.on_transcript("An index is a B-tree ...", is_final=True)
        >>> await session.submit()
    """

    def __init__(
        self,
        session_id: str,
        interview_type: InterviewType,
        *,
        store: SessionRecordStore,
        evaluator: Evaluator,
        followup_generator: Optional[FollowupGenerator] = None,
        question_generator: Optional[QuestionGenerator] = None,
        depth_generator: Optional[DepthQuestionGenerator] = None,
        narrator: Optional[Narrator] = None,
        speech_output: Optional[SpeechOutput] = None,
        speech_input: Optional[SpeechInput] = None,
        proctoring: Optional[ProctoringMonitor] = None,
        depth_enabled: bool = True,
        settings: Optional[SessionSettings] = None,
        publisher: Optional[SessionEventPublisher] = None,
        on_complete: Optional[CompletionCallback] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session_id = session_id
        self.interview_type = interview_type
        self.settings = settings or SessionSettings()
        self.store = store
        self._evaluator = evaluator
        self._question_generator = question_generator
        self._narrator = narrator
        self._speech_output = speech_output
        self._speech_input = speech_input
        self.proctoring = proctoring
        self._publisher = publisher or get_publisher()
        self._on_complete = on_complete
        self._rng = rng

        self.orchestrator = QueueOrchestrator(
            interview_type,
            store,
            evaluator=evaluator,
            followup_generator=followup_generator,
            depth_enabled=depth_enabled,
            proctoring_enabled=proctoring is not None and proctoring.enabled,
            chunk_size=self.settings.chunk_size,
            collaborator_timeout=self.settings.collaborator_timeout,
        )
        self.preprocessor = ChunkPreprocessor(
            self.orchestrator,
            evaluator,
            narrator,
            depth_generator,
            store,
            collaborator_timeout=self.settings.collaborator_timeout,
            narration_timeout=self.settings.narration_timeout,
        )

        self.screen = Screen.SETUP
        self.phase = TurnPhase.IDLE
        self.outcome: Optional[SessionOutcome] = None
        self.closing_message: Optional[str] = None

        self._final_parts: list[str] = []
        self._interim = ""
        self._speech_started = False
        self._muted = False
        self._submitting = False
        self._routed_question_id: Optional[str] = None
        self._pause_task: Optional[asyncio.Task[None]] = None
        self._deadline_task: Optional[asyncio.Task[None]] = None
        self._started_monotonic: Optional[float] = None

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def current_question(self) -> Optional[Question]:
        return self.orchestrator.current

    @property
    def transcript(self) -> str:
        """Live transcript for the current question (final parts plus interim)."""
        parts = list(self._final_parts)
        if self._interim:
            parts.append(self._interim)
        return " ".join(parts).strip()

    @property
    def is_muted(self) -> bool:
        return self._muted

    @property
    def elapsed_seconds(self) -> float:
        if self._started_monotonic is None:
            return 0.0
        return time.monotonic() - self._started_monotonic

    def status(self) -> dict[str, Any]:
        current = self.current_question
        return {
            "session_id": self.session_id,
            "interview_type": self.interview_type.value,
            "screen": self.screen.value,
            "phase": self.phase.value,
            "outcome": self.outcome.value if self.outcome else None,
            "current_question": (
                {"id": current.id, "text": current.text, "category": current.category.value}
                if current is not None and self.screen == Screen.INTERVIEW
                else None
            ),
            "transcript": self.transcript,
            "muted": self._muted,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "ready_chunks": self.preprocessor.ready_chunks,
            "queues": self.orchestrator.stats().model_dump(),
            "closing_message": self.closing_message,
        }

    # =========================================================================
    # Screen transitions
    # =========================================================================

    async def start(
        self,
        consent: bool,
        questions: Optional[Sequence[Question]] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        setup -> loading -> ready.

        Loads the main questions (generated when not supplied) and
        preprocesses chunk 0 before the session becomes ready.

        Raises:
            SessionStateError: If not in setup.
            ConsentRequiredError: If consent is required and not given.
            SessionStartError: If no main questions are available.
        """
        if self.screen != Screen.SETUP:
            raise SessionStateError(self.session_id, self.screen, "start")
        if self.settings.consent_required and not consent:
            raise ConsentRequiredError(self.session_id)

        self.screen = Screen.LOADING
        await self._publisher.publish_status(
            "Preparing your interview",
            session_id=self.session_id,
            data={"screen": self.screen.value},
        )

        if questions is None:
            questions = await self._generate_questions(context or {})
        if not questions:
            self.screen = Screen.SETUP
            raise SessionStartError(f"Session {self.session_id}: no questions available")

        await self.orchestrator.load_main_questions(list(questions))
        await self.preprocessor.preprocess_chunk(0)

        self.screen = Screen.READY
        logger.info("Session %s ready with %d questions", self.session_id, len(questions))
        await self._publisher.publish_status(
            "Interview ready",
            session_id=self.session_id,
            data={"screen": self.screen.value},
        )

    async def _generate_questions(self, context: dict[str, Any]) -> list[Question]:
        if self._question_generator is None:
            return []
        raw = await call_with_timeout(
            self._question_generator.generate_questions(self.interview_type, context),
            self.settings.collaborator_timeout,
            [],
            "Question generation",
        )
        return build_main_questions(raw, rng=self._rng)

    async def begin(self) -> None:
        """
        ready -> interview, then ask the first question.

        Raises:
            SessionStateError: If the session is not ready.
        """
        if self.screen != Screen.READY:
            raise SessionStateError(self.session_id, self.screen, "begin")

        self.screen = Screen.INTERVIEW
        self._started_monotonic = time.monotonic()
        if self.settings.duration_minutes:
            self._deadline_task = asyncio.create_task(self._deadline())
            self._deadline_task.add_done_callback(self._log_task_failure)
        await self._publisher.publish_system("Interview started", session_id=self.session_id)
        await self._advance()

    async def _deadline(self) -> None:
        await asyncio.sleep(float(self.settings.duration_minutes or 0) * 60.0)
        logger.info("Session %s reached its time limit", self.session_id)
        await self.terminate(SessionOutcome.TIME_EXPIRED)

    # =========================================================================
    # Ask
    # =========================================================================

    async def _advance(self) -> None:
        """Select and ask the next question, or finish the interview."""
        if self.screen != Screen.INTERVIEW:
            return

        signal = self.proctoring.poll() if self.proctoring is not None else ProctoringSignal()
        question = await self.orchestrator.select_next(signal)
        if question is None:
            await self._finish(self.orchestrator.outcome or SessionOutcome.COMPLETED)
            return

        if question.chunk_index is not None:
            await self._gate_on_chunk(question)
            if self.screen != Screen.INTERVIEW:
                return

        snapshot = self.proctoring.snapshot() if self.proctoring is not None else None
        await self.orchestrator.mark_asked(question, proctoring_snapshot=snapshot)
        self._reset_transcript()
        self.phase = TurnPhase.ASKING
        await self._publisher.publish_question(
            question.text,
            session_id=self.session_id,
            question_id=question.id,
            data={
                "category": question.category.value,
                "difficulty": question.difficulty.value if question.difficulty else None,
                "queue_origin": question.queue_origin.value if question.queue_origin else None,
            },
        )

        if self._speech_output is not None:
            if question.narrated_audio_ref is None:
                logger.debug("No pre-rendered audio for %s; narrating live", question.id)
            await call_with_timeout(
                self._speech_output.play(question.text, question.narrated_audio_ref),
                self.settings.playback_timeout,
                None,
                f"Playback of {question.id}",
            )
        if self.screen != Screen.INTERVIEW:
            return

        self.phase = TurnPhase.LISTENING
        if self._speech_input is not None:
            await call_with_timeout(
                self._speech_input.start_listening(),
                self.settings.collaborator_timeout,
                None,
                "Start listening",
            )

    async def _gate_on_chunk(self, question: Question) -> None:
        """Block until the question's chunk is ready (bounded), prefetching the next one."""
        chunk = question.chunk_index or 0
        ready = self.preprocessor.is_ready(chunk)
        # The needed chunk must be queued on the preprocessing lock before the prefetch
        if not ready:
            self.preprocessor.schedule(chunk)
        if question.queue_origin == QueueOrigin.Q1:
            self.preprocessor.schedule(chunk + 1)
        if ready:
            return

        self.phase = TurnPhase.PREPARING
        for attempt in range(1, self.settings.chunk_wait_attempts + 1):
            await self._publisher.publish_status(
                "Preparing the next questions",
                session_id=self.session_id,
                data={"chunk": chunk, "attempt": attempt},
            )
            if await self.preprocessor.wait_until_ready(chunk, self.settings.chunk_wait_seconds):
                return
            if self.screen != Screen.INTERVIEW:
                return
        logger.warning(
            "Chunk %d not ready after %d attempts; asking %s without its preparation",
            chunk,
            self.settings.chunk_wait_attempts,
            question.id,
        )

    # =========================================================================
    # Listen / pause-detect
    # =========================================================================

    def _reset_transcript(self) -> None:
        self._final_parts = []
        self._interim = ""
        self._speech_started = False
        self._cancel_pause_timer()

    def on_transcript(self, text: str, is_final: bool = True) -> None:
        """Accumulate one transcript fragment; each fragment resets the pause timer."""
        if self.screen != Screen.INTERVIEW or self.phase != TurnPhase.LISTENING:
            logger.debug("Ignoring transcript fragment outside listening phase")
            return
        text = (text or "").strip()
        if not text:
            return

        if is_final:
            self._final_parts.append(text)
            self._interim = ""
        else:
            self._interim = text
        self._speech_started = True

        if not self._muted:
            self._restart_pause_timer()

    def set_muted(self, muted: bool) -> None:
        """Muting suspends auto-submit entirely; unmuting re-arms it."""
        self._muted = muted
        if muted:
            self._cancel_pause_timer()
        elif self._speech_started and self.phase == TurnPhase.LISTENING:
            self._restart_pause_timer()

    def _restart_pause_timer(self) -> None:
        self._cancel_pause_timer()
        self._pause_task = asyncio.create_task(self._pause_countdown())
        self._pause_task.add_done_callback(self._log_task_failure)

    def _cancel_pause_timer(self) -> None:
        if self._pause_task is not None and not self._pause_task.done():
            self._pause_task.cancel()
        self._pause_task = None

    def _log_task_failure(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task of session %s failed: %s",
                self.session_id,
                exc,
                exc_info=exc,
            )

    async def _pause_countdown(self) -> None:
        await asyncio.sleep(self.settings.pause_window_seconds)
        # Detach before submitting so submit's timer cancel does not hit this task
        self._pause_task = None
        if self._muted or not self._speech_started:
            return
        logger.debug("Pause detected after %.1fs", self.settings.pause_window_seconds)
        await self.submit()

    async def report_proctoring(
        self,
        *,
        mood: Optional[str] = None,
        gesture: Optional[str] = None,
        objects: Optional[list[str]] = None,
        violations: Optional[list[str]] = None,
    ) -> int:
        """
        Feed one detection frame to the proctoring monitor.

        Reaching the violation limit ends an active interview immediately.

        Returns:
            The violation count after this frame.
        """
        if self.proctoring is None or not self.proctoring.enabled:
            return 0
        self.proctoring.update(mood=mood, gesture=gesture, objects=objects, violations=violations)
        count = self.proctoring.violation_count
        if count >= VIOLATION_LIMIT and self.screen == Screen.INTERVIEW:
            await self.terminate(SessionOutcome.TERMINATED_FOR_CAUSE)
        return count

    # =========================================================================
    # Submit / evaluate / route
    # =========================================================================

    async def submit(self) -> bool:
        """
        Freeze the transcript, evaluate it, route it and ask the next question.

        A turn that fails part way (for example the session store cannot be
        written) puts the session back into listening. Submitting again
        resumes it: an answer that was already frozen is not re-recorded and
        the cycle continues with the next question.

        Returns:
            False when nothing was submitted (re-entrant call, empty answer,
            not listening, failed turn); True otherwise.
        """
        if self._submitting or self.screen != Screen.INTERVIEW or self.phase != TurnPhase.LISTENING:
            return False
        answer = self.transcript
        if not answer:
            return False
        question = self.current_question
        if question is None:
            return False

        self._submitting = True
        try:
            if not await self._record_turn(question, answer):
                return True
            await self._advance()
            return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "Turn for %s in session %s failed: %s",
                question.id,
                self.session_id,
                exc,
                exc_info=True,
            )
            await self._resume_listening()
            return False
        finally:
            self._submitting = False

    async def _record_turn(self, question: Question, answer: str) -> bool:
        """
        Freeze, evaluate and route one answer.

        Freezing and routing each happen once per question, so a turn retried
        after a failure picks up where it stopped. Returns False if the
        session ended meanwhile.
        """
        self._cancel_pause_timer()
        self.phase = TurnPhase.SUBMITTING
        if self._speech_input is not None:
            await call_with_timeout(
                self._speech_input.stop_listening(),
                self.settings.collaborator_timeout,
                None,
                "Stop listening",
            )

        if question.candidate_answer is None:
            await self._publisher.publish_answer(
                answer,
                session_id=self.session_id,
                question_id=question.id,
            )
            end_requested = await self.orchestrator.check_end_request(question, answer)

            evaluation = None
            if not end_requested and question.has_criteria:
                self.phase = TurnPhase.EVALUATING
                evaluation = await call_with_timeout(
                    self._evaluator.evaluate(question, question.ideal_answer or "", answer),
                    self.settings.collaborator_timeout,
                    None,
                    f"Evaluation of {question.id}",
                )
            if self.screen != Screen.INTERVIEW:
                return False

            await self.orchestrator.record_answer(question, answer, evaluation)
        else:
            logger.info("Answer to %s already recorded; resuming the turn", question.id)
            end_requested = self.orchestrator.end_requested
            evaluation = question.evaluation

        if self._routed_question_id == question.id:
            return True
        self.phase = TurnPhase.ROUTING
        decision = None
        if not end_requested:
            decision = await self.orchestrator.apply_evaluation(question, evaluation)
        self._routed_question_id = question.id
        await self._publisher.publish_evaluation(
            evaluation.reason if evaluation else "Answer recorded without scoring",
            session_id=self.session_id,
            question_id=question.id,
            score=evaluation.score if evaluation else None,
            route_action=decision.route_action.value if decision and evaluation else None,
        )
        await self._publisher.publish_queue(
            self.orchestrator.stats().model_dump(),
            session_id=self.session_id,
        )
        return True

    async def _resume_listening(self) -> None:
        if self.screen != Screen.INTERVIEW:
            return
        self.phase = TurnPhase.LISTENING
        await self._publisher.publish_error(
            "Your answer could not be processed. Please submit it again.",
            session_id=self.session_id,
        )
        if self._speech_input is not None:
            await call_with_timeout(
                self._speech_input.start_listening(),
                self.settings.collaborator_timeout,
                None,
                "Start listening",
            )

    # =========================================================================
    # Completion
    # =========================================================================

    async def terminate(self, outcome: SessionOutcome) -> None:
        """
        End the session from outside the turn cycle.

        Stops listening and playback, keeps whatever partial answer exists for
        the current question, and goes straight to "complete" without any
        further evaluation.
        """
        if self.screen == Screen.COMPLETE:
            return
        if self.screen != Screen.INTERVIEW:
            logger.info("Session %s closed before the interview started", self.session_id)
        self._cancel_pause_timer()

        if self._speech_output is not None:
            await call_with_timeout(self._speech_output.stop(), 5.0, None, "Stop playback")
        if self._speech_input is not None:
            await call_with_timeout(self._speech_input.stop_listening(), 5.0, None, "Stop listening")

        question = self.current_question
        partial = self.transcript
        if (
            question is not None
            and question.is_asked
            and question.candidate_answer is None
            and partial
        ):
            await self.orchestrator.record_answer(question, partial, None)
            logger.info("Persisted partial answer for %s", question.id)

        await self._finish(outcome, generate_closing=False)

    async def _finish(self, outcome: SessionOutcome, generate_closing: bool = True) -> None:
        if self.screen == Screen.COMPLETE:
            return
        self.screen = Screen.COMPLETE
        self.phase = TurnPhase.FINISHED
        self.outcome = outcome
        self._cancel_pause_timer()

        closing = None
        if generate_closing and self._question_generator is not None and outcome in (
            SessionOutcome.COMPLETED,
            SessionOutcome.CANDIDATE_REQUESTED_END,
        ):
            closing = await call_with_timeout(
                self._question_generator.generate_closing_message(
                    self.store.record.candidate_name,
                    self._transcript_pairs(),
                ),
                self.settings.collaborator_timeout,
                None,
                "Closing message",
            )
        self.closing_message = (closing or "").strip() or CLOSING_MESSAGES[outcome]

        await self.store.complete_session(outcome, self.closing_message)
        await self._release_audio()
        await self.preprocessor.cancel()
        if self._deadline_task is not None and self._deadline_task is not asyncio.current_task():
            self._deadline_task.cancel()
        self._deadline_task = None

        logger.info("Session %s complete: %s", self.session_id, outcome.value)
        if outcome in (SessionOutcome.TERMINATED_FOR_CAUSE, SessionOutcome.TIME_EXPIRED):
            await self._publisher.publish_error(self.closing_message, session_id=self.session_id)
        else:
            await self._publisher.publish_system(self.closing_message, session_id=self.session_id)

        if self._on_complete is not None:
            try:
                await self._on_complete(self)
            except Exception as exc:  # noqa: BLE001 - completion hooks must not break the session
                logger.warning("Completion hook failed for %s: %s", self.session_id, exc)

    def _transcript_pairs(self) -> list[dict[str, Any]]:
        return [
            {"question": q.text, "answer": q.candidate_answer}
            for q in self.orchestrator.asked
            if q.candidate_answer
        ]

    async def _release_audio(self) -> None:
        if self._narrator is None:
            return
        handles = [q.narrated_audio_ref for q in self.store.record.questions if q.narrated_audio_ref]
        if not handles:
            return
        await call_with_timeout(
            self._narrator.release(handles),
            self.settings.collaborator_timeout,
            None,
            "Audio release",
        )
