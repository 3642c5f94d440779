"""
Real-time Pub/Sub for interview engine events.

Provides an in-memory pub/sub system for streaming turn-cycle events
(question asked, answer submitted, evaluation, queue mutation, status) to
listeners such as the HTTP service's event endpoint.

Uses asyncio queues for communication between the session tasks and
any number of subscribers.

Example usage:
    publisher = get_publisher()
    await publisher.publish_question(
        session_id="sess_1234abcd",
        question_id="q_3",
        content="Explain database indexing.",
    )
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .models import utc_timestamp


__all__ = [
    "EngineEvent",
    "EventType",
    "SessionEventPublisher",
    "get_publisher",
    "reset_publisher",
]


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """
    Types of engine events published to the stream.

    Attributes:
        QUESTION: A question was played to the candidate.
        ANSWER: A candidate answer was frozen and submitted.
        EVALUATION: An answer was scored.
        QUEUE: Queue sizes changed after routing.
        STATUS: Screen / turn-phase changes, including "preparing".
        SYSTEM: Session lifecycle messages (start, end, closing remark).
        ERROR: Session-level failures shown to the candidate.
    """

    QUESTION = "question"
    ANSWER = "answer"
    EVALUATION = "evaluation"
    QUEUE = "queue"
    STATUS = "status"
    SYSTEM = "system"
    ERROR = "error"


@dataclass
class EngineEvent:
    """
    A single event from an interview session.

    Attributes:
        event_type: Category of the event.
        content: Human-readable text of the event.
        session_id: Session that produced the event.
        timestamp: UTC timestamp when the event was created.
        question_id: Question the event refers to, if any.
        data: Structured payload (scores, queue stats, ...).
    """

    event_type: EventType
    content: str
    session_id: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)
    question_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "content": self.content,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "question_id": self.question_id,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class SessionEventPublisher:
    """
    Publisher for engine events.

    Manages multiple subscriber queues and broadcasts events to all.
    Safe for use from concurrent asyncio tasks through its lock.

    Attributes:
        max_history: Maximum number of events retained overall and for each
            session.

    Example:
        publisher = SessionEventPublisher()
        queue = await publisher.subscribe()
        await publisher.publish_system("Session started", session_id="sess_1")
        event = await queue.get()
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscribers: list[asyncio.Queue[EngineEvent]] = []
        self._history: list[EngineEvent] = []
        self._session_history: dict[str, list[EngineEvent]] = {}
        self._max_history = max_history
        self._lock = asyncio.Lock()
        logger.info("SessionEventPublisher initialized with max_history=%d", max_history)

    async def subscribe(self) -> asyncio.Queue[EngineEvent]:
        """
        Subscribe to engine events.

        The returned queue is primed with the retained history. Caller is
        responsible for calling unsubscribe when done.
        """
        queue: asyncio.Queue[EngineEvent] = asyncio.Queue()
        async with self._lock:
            self._subscribers.append(queue)
            for event in self._history:
                await queue.put(event)
        logger.debug("New subscriber added. Total: %d", len(self._subscribers))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[EngineEvent]) -> None:
        async with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
        logger.debug("Subscriber removed. Total: %d", len(self._subscribers))

    async def publish(self, event: EngineEvent) -> None:
        """
        Publish an event to all subscribers and store it in history.

        Args:
            event: The event to publish.
        """
        async with self._lock:
            self._history.append(event)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history :]
            if event.session_id is not None:
                session_events = self._session_history.setdefault(event.session_id, [])
                session_events.append(event)
                if len(session_events) > self._max_history:
                    del session_events[: -self._max_history]

            for queue in self._subscribers:
                try:
                    await queue.put(event)
                except Exception as e:
                    logger.warning("Failed to publish to subscriber: %s", e)

        logger.debug("Published event: %s", event.event_type.value)

    async def publish_question(
        self,
        content: str,
        *,
        session_id: Optional[str] = None,
        question_id: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        await self.publish(
            EngineEvent(
                event_type=EventType.QUESTION,
                content=content,
                session_id=session_id,
                question_id=question_id,
                data=data or {},
            )
        )

    async def publish_answer(
        self,
        content: str,
        *,
        session_id: Optional[str] = None,
        question_id: Optional[str] = None,
    ) -> None:
        await self.publish(
            EngineEvent(
                event_type=EventType.ANSWER,
                content=content,
                session_id=session_id,
                question_id=question_id,
            )
        )

    async def publish_evaluation(
        self,
        content: str,
        *,
        session_id: Optional[str] = None,
        question_id: Optional[str] = None,
        score: Optional[float] = None,
        route_action: Optional[str] = None,
    ) -> None:
        """
        Publish an evaluation result.

        Args:
            content: Evaluator's reason text.
            session_id: Session identifier.
            question_id: Question that was scored.
            score: Score 0-100, None when unscored.
            route_action: Routing band chosen for the score.
        """
        await self.publish(
            EngineEvent(
                event_type=EventType.EVALUATION,
                content=content,
                session_id=session_id,
                question_id=question_id,
                data={"score": score, "route_action": route_action},
            )
        )

    async def publish_queue(
        self,
        stats: dict[str, Any],
        *,
        session_id: Optional[str] = None,
    ) -> None:
        await self.publish(
            EngineEvent(
                event_type=EventType.QUEUE,
                content="Queue state updated",
                session_id=session_id,
                data=stats,
            )
        )

    async def publish_status(
        self,
        content: str,
        *,
        session_id: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        await self.publish(
            EngineEvent(
                event_type=EventType.STATUS,
                content=content,
                session_id=session_id,
                data=data or {},
            )
        )

    async def publish_system(self, content: str, *, session_id: Optional[str] = None) -> None:
        await self.publish(
            EngineEvent(event_type=EventType.SYSTEM, content=content, session_id=session_id)
        )

    async def publish_error(self, content: str, *, session_id: Optional[str] = None) -> None:
        await self.publish(
            EngineEvent(event_type=EventType.ERROR, content=content, session_id=session_id)
        )

    async def get_history(self, session_id: Optional[str] = None) -> list[EngineEvent]:
        """
        Get the event history (async-safe).

        Args:
            session_id: When given, only events of that session are returned.

        Returns:
            Copy of the (filtered) history list.
        """
        async with self._lock:
            if session_id is None:
                return list(self._history)
            return list(self._session_history.get(session_id, []))

    async def forget_session(self, session_id: str) -> None:
        """Drop every retained event of a session."""
        async with self._lock:
            self._session_history.pop(session_id, None)
            self._history = [e for e in self._history if e.session_id != session_id]
        logger.debug("History of session %s dropped", session_id)

    async def clear_history(self) -> None:
        async with self._lock:
            self._history.clear()
            self._session_history.clear()
        logger.debug("History cleared")

    @property
    def subscriber_count(self) -> int:
        """Approximate number of active subscribers (not lock-protected)."""
        return len(self._subscribers)


# Global publisher instance
_publisher: SessionEventPublisher | None = None


def get_publisher() -> SessionEventPublisher:
    """
    Get the global publisher instance.

    Creates a new publisher if one doesn't exist.
    """
    global _publisher
    if _publisher is None:
        _publisher = SessionEventPublisher()
    return _publisher


def reset_publisher() -> None:
    """
    Reset the global publisher instance.

    Primarily useful for testing to ensure a clean state between tests.
    """
    global _publisher
    _publisher = None
    logger.debug("Global publisher reset")
