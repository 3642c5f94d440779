"""
Flow-rule engine.

Pure score banding: given the answered question's metadata and its score,
decide which structural queue mutations should follow. No queue state is
touched here; the orchestrator applies the decision.

Technical bands:
    score <= 10  -> corrective follow-up, drop the topic's depth questions
    score >= 80  -> promote the next-harder sibling
    otherwise    -> no-op

Behavioral bands:
    score < 20       -> corrective follow-up
    score > 80       -> probing follow-up
    20 <= score <= 80 -> no-op
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import (
    Difficulty,
    FollowupTone,
    InterviewType,
    Question,
    QuestionCategory,
    QueueOrigin,
    RouteAction,
)


__all__ = [
    "FlowDecision",
    "Promotion",
    "TECHNICAL_DELETE_MAX",
    "TECHNICAL_PROMOTE_MIN",
    "BEHAVIORAL_CORRECTIVE_BELOW",
    "BEHAVIORAL_PROBING_ABOVE",
    "can_spawn_followup",
    "decide",
    "next_difficulty",
]


TECHNICAL_DELETE_MAX = 10.0
TECHNICAL_PROMOTE_MIN = 80.0
BEHAVIORAL_CORRECTIVE_BELOW = 20.0
BEHAVIORAL_PROBING_ABOVE = 80.0


@dataclass(frozen=True)
class Promotion:
    """Move the ``to_difficulty`` sibling of ``topic_id`` from Q2 to the front of Q1."""

    topic_id: str
    to_difficulty: Difficulty


@dataclass(frozen=True)
class FlowDecision:
    """Structural outcome of one scored answer."""

    route_action: RouteAction = RouteAction.NORMAL_FLOW
    delete_topic_from_q2: Optional[str] = None
    delete_following_depth: int = 0
    promote: Optional[Promotion] = None
    generate_followup: bool = False
    followup_tone: Optional[FollowupTone] = None

    @property
    def is_noop(self) -> bool:
        return (
            self.delete_topic_from_q2 is None
            and self.delete_following_depth == 0
            and self.promote is None
            and not self.generate_followup
        )


NO_OP = FlowDecision()


def next_difficulty(current: Optional[Difficulty]) -> Optional[Difficulty]:
    """base -> medium -> hard -> None."""
    if current is None:
        return Difficulty.MEDIUM
    if current == Difficulty.MEDIUM:
        return Difficulty.HARD
    return None


def can_spawn_followup(question: Question) -> bool:
    """A follow-up (or anything served from Q3) never spawns another follow-up."""
    if question.queue_origin == QueueOrigin.Q3:
        return False
    return question.category not in (QuestionCategory.FOLLOWUP, QuestionCategory.INTERRUPTION)


def _decide_technical(question: Question, score: float, depth_enabled: bool) -> FlowDecision:
    depth_applies = depth_enabled and question.category == QuestionCategory.TECHNICAL
    followup_ok = can_spawn_followup(question)

    if score <= TECHNICAL_DELETE_MAX:
        delete_topic = None
        delete_following = 0
        if depth_applies:
            if question.topic_id:
                delete_topic = question.topic_id
            else:
                # No topic link: fall back to dropping the next two unanswered depth questions
                delete_following = 2
        return FlowDecision(
            route_action=RouteAction.FOLLOWUP,
            delete_topic_from_q2=delete_topic,
            delete_following_depth=delete_following,
            generate_followup=followup_ok,
            followup_tone=FollowupTone.CORRECTIVE if followup_ok else None,
        )

    if score >= TECHNICAL_PROMOTE_MIN:
        target = next_difficulty(question.difficulty)
        promote = None
        if depth_applies and question.topic_id and target is not None:
            promote = Promotion(topic_id=question.topic_id, to_difficulty=target)
        return FlowDecision(route_action=RouteAction.NEXT_DIFFICULTY, promote=promote)

    return NO_OP


def _decide_behavioral(question: Question, score: float) -> FlowDecision:
    followup_ok = can_spawn_followup(question)

    if score < BEHAVIORAL_CORRECTIVE_BELOW:
        return FlowDecision(
            route_action=RouteAction.FOLLOWUP_NEGATIVE,
            generate_followup=followup_ok,
            followup_tone=FollowupTone.CORRECTIVE if followup_ok else None,
        )
    if score > BEHAVIORAL_PROBING_ABOVE:
        return FlowDecision(
            route_action=RouteAction.FOLLOWUP_POSITIVE,
            generate_followup=followup_ok,
            followup_tone=FollowupTone.PROBING if followup_ok else None,
        )
    return NO_OP


def decide(
    question: Question,
    score: float,
    interview_type: InterviewType,
    depth_enabled: bool = True,
) -> FlowDecision:
    """
    Band a score into a flow decision.

    Args:
        question: The question that was just answered.
        score: Evaluator score, 0-100.
        interview_type: Selects the band table.
        depth_enabled: Whether the session carries a Q2 depth tier.

    Returns:
        FlowDecision describing the queue mutations to apply. The score is
        authoritative; the evaluator's own route_action is not consulted.

    Example:
        >>> q = Question(id="t1", text="...", category=QuestionCategory.TECHNICAL, topic_id="T1")
        >>> decide(q, 85, InterviewType.TECHNICAL).promote
        Promotion(topic_id='T1', to_difficulty=<Difficulty.MEDIUM: 'medium'>)
    """
    if interview_type == InterviewType.TECHNICAL:
        return _decide_technical(question, score, depth_enabled)
    return _decide_behavioral(question, score)
