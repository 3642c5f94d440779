"""Route orchestrator for spec-configured outputs."""

from __future__ import annotations

import logging

from interview_engine.pubsub import SessionEventPublisher
from interview_platform.routes.base import OutputRoute, RouteDispatchResult, SessionSummary
from interview_platform.routes.event_stream import EventStreamRoute
from interview_platform.routes.webhook import WebhookRoute
from interview_platform.spec_models import InterviewSpec, OutputRouteType


logger = logging.getLogger(__name__)


class RouteOrchestrator:
    """Delivers each finished-session summary to every enabled route, in order."""

    def __init__(self, routes: tuple[OutputRoute, ...]) -> None:
        self._routes = routes

    @property
    def route_count(self) -> int:
        return len(self._routes)

    async def dispatch_all(self, payload: SessionSummary) -> list[RouteDispatchResult]:
        results: list[RouteDispatchResult] = []
        for route in self._routes:
            result = await route.dispatch(payload)
            if not result.ok:
                logger.warning(
                    "Route %s failed for session %s: %s",
                    result.route_id,
                    result.session_id,
                    result.detail,
                )
            results.append(result)
        return results


def build_route_orchestrator(
    spec: InterviewSpec,
    publisher: SessionEventPublisher | None = None,
) -> RouteOrchestrator:
    """Create route instances from a validated interview spec."""
    routes: list[OutputRoute] = []

    for route in spec.outputs.routes:
        if not route.enabled:
            continue

        if route.type == OutputRouteType.EVENT_STREAM:
            routes.append(EventStreamRoute(route.id, publisher=publisher))
            continue

        if route.type == OutputRouteType.WEBHOOK:
            if not route.url:
                raise RuntimeError(
                    f"Route '{route.id}' is webhook but has no URL configured."
                )
            routes.append(
                WebhookRoute(
                    route_id=route.id,
                    url=route.url,
                    headers=route.headers,
                    timeout_seconds=route.timeout_seconds,
                )
            )
            continue

        raise RuntimeError(f"Unsupported route type '{route.type.value}'.")

    if not routes:
        raise RuntimeError("No enabled output routes configured in interview spec.")

    return RouteOrchestrator(tuple(routes))
