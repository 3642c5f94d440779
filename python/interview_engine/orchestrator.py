"""
Queue Orchestrator.

Owns the session's QueueSet (Q0 signal gate, Q1 main, Q2 depth pool, Q3
follow-ups) and is the only component that mutates it. Every mutation is
mirrored to the Persistence collaborator so the durable record and the
in-memory queues never drift apart.

Selection priority per turn:
    1. Q0: violation limit reached -> terminate (no question)
    2. Q0: new non-neutral mood -> mood follow-up pushed to the Q3 head
    3. Q3 head
    4. Q1 head
    5. nothing -> interview complete

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .collaborators import Evaluator, FollowupGenerator, Persistence, call_with_timeout
from .flow_rules import FlowDecision, NO_OP, decide
from .models import (
    Difficulty,
    EvaluationResult,
    IdealAnswer,
    InterviewType,
    ProctoringSignal,
    Question,
    QuestionCategory,
    QueueOrigin,
    QueueSet,
    QueueStats,
    SessionOutcome,
)
from .proctoring import NEUTRAL_MOOD, VIOLATION_LIMIT, mood_followup_text


__all__ = [
    "CLOSING_FOLLOWUP_TEXT",
    "END_REQUEST_PHRASES",
    "QueueOrchestrator",
]


logger = logging.getLogger(__name__)

END_REQUEST_PHRASES = ("end this interview", "stop the interview")
CLOSING_FOLLOWUP_TEXT = (
    "Before we conclude, is there anything specific you'd like to discuss or clarify?"
)
DEFAULT_COLLABORATOR_TIMEOUT = 30.0


class QueueOrchestrator:
    """
    Priority scheduler for one interview session.

    The orchestrator is parameterized rather than specialized: ``depth_enabled``
    turns the Q2 tier on, ``proctoring_enabled`` turns the Q0 gate on.

    Args:
        interview_type: Technical or behavioral band table.
        persistence: Durable mirror for all queue/question mutations.
        evaluator: Used to enrich generated follow-ups with an ideal answer.
        followup_generator: Produces corrective/probing follow-up text.
        depth_enabled: Whether a Q2 depth tier exists.
        proctoring_enabled: Whether Q0 gates selection.
        chunk_size: Main questions per preprocessing chunk.
        collaborator_timeout: Seconds before a collaborator call falls back.

    Example:
        >>> orchestrator = QueueOrchestrator(InterviewType.TECHNICAL, persistence)
        >>> await orchestrator.load_main_questions(questions)
        >>> question = await orchestrator.select_next(ProctoringSignal())
        >>> await orchestrator.mark_asked(question)
        >>> await orchestrator.record_answer(question, "answer", result)
        >>> await orchestrator.apply_evaluation(question, result)
    """

    def __init__(
        self,
        interview_type: InterviewType,
        persistence: Persistence,
        *,
        evaluator: Optional[Evaluator] = None,
        followup_generator: Optional[FollowupGenerator] = None,
        depth_enabled: bool = True,
        proctoring_enabled: bool = False,
        chunk_size: int = 5,
        collaborator_timeout: float = DEFAULT_COLLABORATOR_TIMEOUT,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.interview_type = interview_type
        self.depth_enabled = depth_enabled and interview_type == InterviewType.TECHNICAL
        self.chunk_size = chunk_size
        self.collaborator_timeout = collaborator_timeout
        self._persistence = persistence
        self._evaluator = evaluator
        self._followup_generator = followup_generator

        self.queues = QueueSet(q2=[] if self.depth_enabled else None)
        self.queues.q0_signal.enabled = proctoring_enabled

        self._asked: list[Question] = []
        self._asked_keys: set[str] = set()
        self._main: list[Question] = []
        self._main_order: dict[str, int] = {}
        self._last_seen_mood = NEUTRAL_MOOD
        self._followup_count = 0
        self._end_requested = False
        self._closing_question_id: Optional[str] = None
        self._outcome: Optional[SessionOutcome] = None
        self.current: Optional[Question] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def asked(self) -> list[Question]:
        """Questions in the order they were played."""
        return list(self._asked)

    @property
    def questions_asked(self) -> int:
        return len(self._asked)

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        """Set once selection has stopped: terminated, end requested, or exhausted."""
        return self._outcome

    @property
    def end_requested(self) -> bool:
        return self._end_requested

    def stats(self) -> QueueStats:
        return self.queues.stats(questions_asked=len(self._asked))

    # =========================================================================
    # Staging
    # =========================================================================

    async def load_main_questions(self, questions: Sequence[Question]) -> None:
        """Populate Q1 (once per session) and assign chunk indexes."""
        if self._main_order:
            raise RuntimeError("Main questions already loaded for this session")
        for index, question in enumerate(questions):
            question.chunk_index = index // self.chunk_size
            self._main_order[question.id] = index
            self._main.append(question)
            self.queues.q1.append(question)
            await self._persistence.insert_question(question)
        logger.info(
            "Loaded %d main questions in %d chunks",
            len(questions),
            self.chunk_count,
        )

    @property
    def chunk_count(self) -> int:
        if not self._main_order:
            return 0
        return (len(self._main_order) - 1) // self.chunk_size + 1

    def chunk_questions(self, chunk_index: int) -> list[Question]:
        """Staged main questions of one chunk that have not been asked yet."""
        return [q for q in self._main if q.chunk_index == chunk_index and not q.is_asked]

    def enrich_question(
        self,
        question: Question,
        ideal: Optional[IdealAnswer] = None,
        audio_ref: Optional[str] = None,
    ) -> None:
        """Attach preprocessed material to a staged question."""
        if question.is_asked:
            logger.warning("Skipping enrichment of already-asked question %s", question.id)
            return
        if ideal is not None and not ideal.is_empty:
            question.ideal_answer = ideal.ideal_answer
            question.reference_sources = list(ideal.sources)
        if audio_ref:
            question.narrated_audio_ref = audio_ref

    async def stage_depth_questions(
        self,
        base: Question,
        depth_texts: dict[Difficulty, str],
    ) -> list[Question]:
        """
        Create the medium/hard Q2 siblings of a technical base question.

        The siblings share the base's ``topic_id`` (the base id when it has
        none) and point back to it through ``parent_question_id``.
        """
        if self.queues.q2 is None:
            return []
        if base.category != QuestionCategory.TECHNICAL or base.is_asked:
            return []
        if base.topic_id is None:
            base.topic_id = base.id

        staged: list[Question] = []
        insert_after = base.id
        for difficulty in (Difficulty.MEDIUM, Difficulty.HARD):
            text = (depth_texts.get(difficulty) or "").strip()
            if not text:
                continue
            sibling = Question(
                id=f"{base.id}_{difficulty.value}",
                text=text,
                category=QuestionCategory.TECHNICAL,
                difficulty=difficulty,
                topic_id=base.topic_id,
                parent_question_id=base.id,
                queue_origin=QueueOrigin.Q2,
                chunk_index=base.chunk_index,
            )
            self.queues.q2.append(sibling)
            await self._persistence.insert_question(sibling, insert_after_id=insert_after)
            insert_after = sibling.id
            staged.append(sibling)
        return staged

    # =========================================================================
    # Selection
    # =========================================================================

    async def select_next(self, signal: ProctoringSignal) -> Optional[Question]:
        """
        Pick the next question under the priority protocol.

        Returns None when the session should end; ``outcome`` then says why.
        The returned question is popped but not yet marked asked.
        """
        gate = self.queues.q0_signal
        if gate.enabled:
            gate.violation_count = signal.violation_count
            gate.mood_state = signal.mood_state
            gate.recent_logs = list(signal.recent_logs)
            if signal.violation_count >= VIOLATION_LIMIT:
                logger.warning(
                    "Violation limit reached (%d); terminating session",
                    signal.violation_count,
                )
                self._outcome = SessionOutcome.TERMINATED_FOR_CAUSE
                return None
            if not self._end_requested:
                await self._maybe_queue_mood_followup(signal)

        if self._end_requested and self._closing_question_id is not None:
            closing = next((q for q in self._asked if q.id == self._closing_question_id), None)
            if closing is not None:
                self._outcome = SessionOutcome.CANDIDATE_REQUESTED_END
                return None

        while True:
            if self.queues.q3:
                question = self.queues.q3.pop(0)
                origin = QueueOrigin.Q3
            elif self.queues.q1:
                question = self.queues.q1.pop(0)
                origin = QueueOrigin.Q1
            else:
                logger.info("All queues exhausted after %d questions", len(self._asked))
                self._outcome = SessionOutcome.COMPLETED
                return None

            if question.topic_key in self._asked_keys:
                logger.info(
                    "Skipping %s: topic %s already asked",
                    question.id,
                    question.topic_key,
                )
                await self._persistence.delete_question(question.id)
                continue

            if question.queue_origin is None:
                question.queue_origin = origin
            return question

    async def _maybe_queue_mood_followup(self, signal: ProctoringSignal) -> None:
        mood = (signal.mood_state or NEUTRAL_MOOD).lower()
        previous = self._last_seen_mood
        self._last_seen_mood = mood
        if not signal.mood_changed or mood == NEUTRAL_MOOD or mood == previous:
            return

        text = mood_followup_text(mood)
        if text is None:
            logger.debug("No follow-up template for mood '%s'", mood)
            return

        parent_id = self.current.id if self.current is not None else None
        followup = self._new_followup(text, parent_id, trigger=f"mood:{mood}")
        self.queues.q3.insert(0, followup)
        await self._persistence.insert_question(followup, insert_after_id=parent_id)
        logger.info("Queued mood follow-up %s for mood '%s'", followup.id, mood)

    async def mark_asked(self, question: Question, proctoring_snapshot: Optional[dict] = None) -> None:
        """Stamp the question as played and make it the current question."""
        if proctoring_snapshot is not None:
            question.proctoring_snapshot = proctoring_snapshot
        question.mark_asked()
        self._asked.append(question)
        self._asked_keys.add(question.topic_key)
        self.current = question
        logger.info(
            "Asking %s [%s] (%d asked so far)",
            question.id,
            question.queue_origin.value if question.queue_origin else "-",
            len(self._asked),
        )

    # =========================================================================
    # Answer handling
    # =========================================================================

    async def record_answer(
        self,
        question: Question,
        answer: str,
        evaluation: Optional[EvaluationResult],
    ) -> None:
        """Write the frozen transcript and evaluation once, then persist them."""
        question.candidate_answer = answer
        if evaluation is not None:
            question.evaluation = evaluation
        await self._persistence.record_answer(question.id, answer, evaluation)

    async def apply_evaluation(
        self,
        question: Question,
        result: Optional[EvaluationResult],
    ) -> FlowDecision:
        """
        Route one evaluated answer through the flow rules.

        An unscored answer (``result`` is None) causes no structural mutation.

        Returns:
            The FlowDecision that was applied.
        """
        if result is None:
            logger.info("Answer to %s unscored; advancing normally", question.id)
            return NO_OP

        decision = decide(question, result.score, self.interview_type, self.depth_enabled)
        logger.info(
            "Score %.0f on %s -> %s",
            result.score,
            question.id,
            decision.route_action.value,
        )

        if decision.delete_topic_from_q2:
            await self._delete_topic(decision.delete_topic_from_q2)
        if decision.delete_following_depth:
            await self._delete_following_depth(question, decision.delete_following_depth)
        if decision.promote is not None:
            await self._promote(question, decision.promote.topic_id, decision.promote.to_difficulty)
        if decision.generate_followup and decision.followup_tone is not None:
            await self._generate_followup(question, decision)
        return decision

    async def _delete_topic(self, topic_id: str) -> None:
        if self.queues.q2 is None:
            return
        doomed = [q for q in self.queues.q2 if q.topic_id == topic_id]
        self.queues.q2 = [q for q in self.queues.q2 if q.topic_id != topic_id]
        for question in doomed:
            await self._persistence.delete_question(question.id)
        logger.info("Deleted %d depth questions for topic %s", len(doomed), topic_id)

    async def _delete_following_depth(self, question: Question, count: int) -> None:
        if not self.queues.q2:
            return
        position = self._main_order.get(question.id, -1)
        later = [
            q for q in self.queues.q2
            if self._main_order.get(q.parent_question_id or "", len(self._main_order)) > position
        ]
        doomed = later[:count]
        doomed_ids = {q.id for q in doomed}
        self.queues.q2 = [q for q in self.queues.q2 if q.id not in doomed_ids]
        for depth_question in doomed:
            await self._persistence.delete_question(depth_question.id)
        logger.info("Deleted %d following depth questions after %s", len(doomed), question.id)

    async def _promote(self, question: Question, topic_id: str, difficulty: Difficulty) -> None:
        if self.queues.q2 is None:
            return
        sibling = next(
            (q for q in self.queues.q2 if q.topic_id == topic_id and q.difficulty == difficulty),
            None,
        )
        if sibling is None:
            logger.warning(
                "No %s sibling left for topic %s; promotion skipped",
                difficulty.value,
                topic_id,
            )
            return
        self.queues.q2.remove(sibling)
        self.queues.q1.insert(0, sibling)
        await self._persistence.delete_question(sibling.id)
        await self._persistence.insert_question(sibling, insert_after_id=question.id)
        logger.info("Promoted %s (%s) to the front of Q1", sibling.id, difficulty.value)

    async def _generate_followup(self, question: Question, decision: FlowDecision) -> None:
        if self._followup_generator is None:
            return
        answer = question.candidate_answer or ""
        text = await call_with_timeout(
            self._followup_generator.generate_followup(
                question.text,
                answer,
                decision.followup_tone,
            ),
            self.collaborator_timeout,
            None,
            "Follow-up generation",
        )
        if not text or not text.strip():
            return

        followup = self._new_followup(
            text.strip(),
            question.id,
            trigger=f"score:{decision.followup_tone.value}",
        )
        await self._enrich_followup(followup)
        self.queues.q3.insert(0, followup)
        await self._persistence.insert_question(followup, insert_after_id=question.id)
        logger.info("Queued %s follow-up %s after %s", decision.followup_tone.value, followup.id, question.id)

    async def _enrich_followup(self, followup: Question) -> None:
        if self._evaluator is None:
            return
        ideal = await call_with_timeout(
            self._evaluator.generate_ideal_answer(followup.text),
            self.collaborator_timeout,
            None,
            "Follow-up ideal answer",
        )
        self.enrich_question(followup, ideal=ideal)

    def _new_followup(self, text: str, parent_id: Optional[str], trigger: str) -> Question:
        self._followup_count += 1
        stem = parent_id or "session"
        return Question(
            id=f"{stem}_followup_{self._followup_count}",
            text=text,
            category=QuestionCategory.FOLLOWUP,
            parent_question_id=parent_id,
            queue_origin=QueueOrigin.Q3,
            trigger=trigger,
        )

    # =========================================================================
    # Early end
    # =========================================================================

    async def check_end_request(self, question: Question, answer: str) -> bool:
        """
        Detect a candidate asking to stop and queue one closing follow-up.

        Returns:
            True when this answer triggered the end request.
        """
        lowered = answer.lower()
        if self._end_requested or not any(p in lowered for p in END_REQUEST_PHRASES):
            return False

        self._end_requested = True
        closing = self._new_followup(CLOSING_FOLLOWUP_TEXT, question.id, trigger="end_request")
        self._closing_question_id = closing.id
        self.queues.q3.insert(0, closing)
        await self._persistence.insert_question(closing, insert_after_id=question.id)
        logger.info("Candidate requested end; closing follow-up %s queued", closing.id)
        return True
