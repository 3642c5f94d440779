"""Event stream route.

Publishes the session outcome summary onto the engine's event publisher so
that event-stream subscribers see it next to the turn-cycle events.
"""

from __future__ import annotations

from interview_engine.pubsub import SessionEventPublisher, get_publisher
from interview_platform.routes.base import RouteDispatchResult, SessionSummary


class EventStreamRoute:
    """Route that republishes summaries as status events."""

    route_type = "event_stream"

    def __init__(self, route_id: str, publisher: SessionEventPublisher | None = None) -> None:
        self.route_id = route_id
        self._publisher = publisher

    async def dispatch(self, payload: SessionSummary) -> RouteDispatchResult:
        publisher = self._publisher or get_publisher()
        outcome = payload.get("outcome") or "unknown"
        await publisher.publish_status(
            f"Session finished: {outcome}",
            session_id=payload.get("session_id"),
            data={"summary": payload},
        )
        return RouteDispatchResult.delivered(self, payload)
