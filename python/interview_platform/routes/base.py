"""Output route interfaces and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

# Payload produced by SessionRecordStore.summary()
SessionSummary = dict[str, Any]


@dataclass(frozen=True)
class RouteDispatchResult:
    """Outcome of delivering one session summary to one route."""

    route_id: str
    route_type: str
    ok: bool
    session_id: str | None = None
    detail: str | None = None

    @classmethod
    def delivered(cls, route: "OutputRoute", summary: SessionSummary) -> "RouteDispatchResult":
        return cls(route.route_id, route.route_type, True, summary.get("session_id"))

    @classmethod
    def failed(
        cls,
        route: "OutputRoute",
        summary: SessionSummary,
        detail: str,
    ) -> "RouteDispatchResult":
        return cls(route.route_id, route.route_type, False, summary.get("session_id"), detail)


class OutputRoute(Protocol):
    """A destination for finished-session summaries. Implementations never raise."""

    route_id: str
    route_type: str

    async def dispatch(self, payload: SessionSummary) -> RouteDispatchResult:
        ...
