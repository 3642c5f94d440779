"""Output routing package."""

from interview_platform.routes.base import RouteDispatchResult, SessionSummary
from interview_platform.routes.router import RouteOrchestrator, build_route_orchestrator

__all__ = [
    "RouteDispatchResult",
    "RouteOrchestrator",
    "SessionSummary",
    "build_route_orchestrator",
]
