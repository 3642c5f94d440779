"""Webhook output route."""

from __future__ import annotations

import httpx

from interview_platform.routes.base import RouteDispatchResult, SessionSummary


class WebhookRoute:
    """POST finished-session summaries to an ATS or other HTTP endpoint."""

    route_type = "webhook"

    def __init__(
        self,
        route_id: str,
        url: str,
        headers: dict[str, str] | None = None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.route_id = route_id
        self.url = url
        self.headers = headers or {}
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def dispatch(self, payload: SessionSummary) -> RouteDispatchResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(self.url, headers=self.headers, json=payload)
        except Exception as exc:  # noqa: BLE001 - dispatch must never throw
            return RouteDispatchResult.failed(self, payload, str(exc))

        if response.status_code >= 400:
            return RouteDispatchResult.failed(
                self,
                payload,
                f"HTTP {response.status_code}: {response.text[:160]}",
            )
        return RouteDispatchResult.delivered(self, payload)
