"""
Proctoring monitor.

Holds the webcam side-channel state for one session (violation count, current
mood, recent observation logs) and hands the orchestrator a fresh
``ProctoringSignal`` value once per turn.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .models import ProctoringLog, ProctoringSignal


__all__ = [
    "MAX_PROCTORING_LOGS",
    "MOOD_FOLLOWUP_TEMPLATES",
    "NEUTRAL_MOOD",
    "ProctoringMonitor",
    "RECENT_LOG_COUNT",
    "VIOLATION_LIMIT",
    "mood_followup_text",
]


logger = logging.getLogger(__name__)

VIOLATION_LIMIT = 3
MAX_PROCTORING_LOGS = 100
RECENT_LOG_COUNT = 10
NEUTRAL_MOOD = "neutral"
FORWARD_GESTURE = "facing_forward"

MOOD_FOLLOWUP_TEMPLATES: dict[str, str] = {
    "happy": (
        "I noticed you seem enthusiastic! Can you tell me what aspect of this "
        "topic excites you the most?"
    ),
    "sad": (
        "You seem a bit uncertain. Would you like me to rephrase the question "
        "or provide more context?"
    ),
    "angry": (
        "I sense some frustration. Would you like to take a moment, or shall we "
        "approach this differently?"
    ),
    "surprised": "That's an interesting reaction! What aspect of this topic surprised you?",
    "anxious": "Take your time. Would you like me to break down the question into smaller parts?",
}


def mood_followup_text(mood: str) -> Optional[str]:
    """Return the follow-up prompt for a mood, or None for unknown/neutral moods."""
    return MOOD_FOLLOWUP_TEMPLATES.get((mood or "").strip().lower())


class ProctoringMonitor:
    """
    Per-session proctoring state.

    ``update`` is fed by the detection side channel at any rate; ``poll`` is
    called once per turn by the session and reports ``mood_changed`` only on
    the first poll that sees a new non-neutral mood.

    Example:
        >>> monitor = ProctoringMonitor(enabled=True)
        >>> monitor.update(mood="anxious", gesture="looking_left")
        >>> monitor.poll().mood_changed
        True
        >>> monitor.poll().mood_changed
        False
    """

    def __init__(self, enabled: bool = True, max_logs: int = MAX_PROCTORING_LOGS) -> None:
        self.enabled = enabled
        self._max_logs = max_logs
        self._violation_count = 0
        self._current_violations: list[str] = []
        self._mood = NEUTRAL_MOOD
        self._last_polled_mood = NEUTRAL_MOOD
        self._logs: list[ProctoringLog] = []

    @property
    def violation_count(self) -> int:
        return self._violation_count

    @property
    def mood(self) -> str:
        return self._mood

    @property
    def logs(self) -> list[ProctoringLog]:
        return list(self._logs)

    def update(
        self,
        *,
        mood: Optional[str] = None,
        gesture: Optional[str] = None,
        objects: Optional[list[str]] = None,
        violations: Optional[list[str]] = None,
    ) -> None:
        """
        Record one detection frame.

        A frame counts as a violation when the gesture is anything other than
        facing forward, or when any object other than a lone person is in view.
        """
        if not self.enabled:
            return

        objects = list(objects or [])
        frame_violations = list(violations or [])
        if gesture and gesture != FORWARD_GESTURE:
            frame_violations.append(f"gesture:{gesture}")
        if objects and objects != ["person"]:
            frame_violations.append("objects:" + ",".join(objects))

        if frame_violations:
            self._violation_count += 1
            logger.warning(
                "Proctoring violation #%d: %s",
                self._violation_count,
                "; ".join(frame_violations),
            )
        self._current_violations = frame_violations

        if mood:
            self._mood = mood.strip().lower()

        self._logs.append(
            ProctoringLog(
                mood=self._mood,
                gesture=gesture,
                objects=objects,
                violation_type="; ".join(frame_violations) or None,
            )
        )
        if len(self._logs) > self._max_logs:
            self._logs = self._logs[-self._max_logs :]

    def poll(self) -> ProctoringSignal:
        """Return this turn's signal value; consumes the mood transition."""
        if not self.enabled:
            return ProctoringSignal()

        mood_changed = self._mood != self._last_polled_mood and self._mood != NEUTRAL_MOOD
        self._last_polled_mood = self._mood
        return ProctoringSignal(
            violation_count=self._violation_count,
            mood_state=self._mood,
            mood_changed=mood_changed,
            current_violations=list(self._current_violations),
            recent_logs=self._logs[-RECENT_LOG_COUNT:],
        )

    def snapshot(self) -> dict[str, Any]:
        """Proctoring context stored alongside each answer."""
        return {
            "violation_count": self._violation_count,
            "current_violations": list(self._current_violations),
            "mood": self._mood,
        }

    def reset(self) -> None:
        self._violation_count = 0
        self._current_violations = []
        self._mood = NEUTRAL_MOOD
        self._last_polled_mood = NEUTRAL_MOOD
        self._logs = []
