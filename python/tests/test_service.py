"""
FastAPI endpoint tests for the Interview Engine Service.

Tests all API endpoints using httpx AsyncClient with proper lifespan
management via asgi-lifespan. Sessions are wired with fake collaborators
through the app factory's session_factory hook.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from interview_engine.pubsub import SessionEventPublisher
from interview_platform import SPECS_DIR, load_interview_spec
from interview_service import create_app, load_service_config
from tests.mock_data import FakeEvaluator, fake_session_factory


async def _client_for(app) -> AsyncIterator[AsyncClient]:
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def publisher() -> SessionEventPublisher:
    return SessionEventPublisher()


@pytest_asyncio.fixture
async def client(tmp_path: Path, publisher: SessionEventPublisher) -> AsyncIterator[AsyncClient]:
    """
    Create async test client with proper lifespan management.

    Uses LifespanManager so the app's lifespan state (sessions, routes,
    publisher) is initialized before requests are made.
    """
    spec, _ = load_interview_spec(str(SPECS_DIR / "technical.json"))
    app = create_app(
        spec,
        session_factory=fake_session_factory(FakeEvaluator(scores={"tech_gil": 5})),
        publisher=publisher,
        output_dir=tmp_path,
    )
    async for ac in _client_for(app):
        yield ac


async def _create(client: AsyncClient, **body) -> dict[str, Any]:
    payload = {"candidate_name": "Sarah Chen", "consent": True, "use_sample_questions": True}
    payload.update(body)
    resp = await client.post("/sessions", json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()


# =============================================================================
# Health
# =============================================================================

class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["interview_id"] == "backend-technical"
        assert data["interview_type"] == "technical"
        assert data["active_sessions"] == 0


# =============================================================================
# Session Lifecycle
# =============================================================================

class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_create_requires_consent(self, client: AsyncClient):
        resp = await client.post("/sessions", json={"consent": False, "use_sample_questions": True})

        assert resp.status_code == 400
        assert resp.json()["error_code"] == "CONSENT_REQUIRED"

    @pytest.mark.asyncio
    async def test_create_with_explicit_questions(self, client: AsyncClient):
        data = await _create(
            client,
            use_sample_questions=False,
            questions=[
                {"text": "Explain the CAP theorem.", "ideal_answer": "Pick two of three."},
                {"id": "custom", "text": "What is a mutex?"},
            ],
        )

        assert data["ok"] is True
        assert data["question_count"] == 2
        assert data["session"]["screen"] == "ready"
        assert data["session"]["ready_chunks"] == [0]

    @pytest.mark.asyncio
    async def test_create_with_generated_questions(self, client: AsyncClient):
        data = await _create(client, use_sample_questions=False, context={"role": "Backend"})

        assert data["question_count"] == 5

    @pytest.mark.asyncio
    async def test_full_interview(self, client: AsyncClient, tmp_path: Path):
        created = await _create(client)
        session_id = created["session_id"]

        resp = await client.post(f"/sessions/{session_id}/begin")
        assert resp.status_code == 200
        status = resp.json()["session"]
        assert status["current_question"]["id"] == "tech_intro"

        asked = []
        for _ in range(20):
            if status["screen"] == "complete":
                break
            asked.append(status["current_question"]["id"])
            await client.post(
                f"/sessions/{session_id}/transcript",
                json={"text": "A considered answer.", "is_final": True},
            )
            resp = await client.post(f"/sessions/{session_id}/submit")
            assert resp.json()["submitted"] is True
            status = resp.json()["session"]

        assert asked[:4] == ["tech_intro", "tech_indexing", "tech_gil", "tech_gil_followup_1"]
        assert asked[-1] == "tech_outro"
        assert status["outcome"] == "completed"

        events = (await client.get(f"/sessions/{session_id}/events")).json()["events"]
        kinds = {event["event_type"] for event in events}
        assert {"question", "answer", "evaluation", "queue", "system"} <= kinds
        assert any(
            event["event_type"] == "status" and event["data"].get("summary", {}).get("outcome") == "completed"
            for event in events
        )

        record = json.loads((tmp_path / f"{session_id}_session.json").read_text(encoding="utf-8"))
        assert record["outcome"] == "completed"

        health = (await client.get("/health")).json()
        assert health["active_sessions"] == 0

    @pytest.mark.asyncio
    async def test_begin_twice_conflicts(self, client: AsyncClient):
        session_id = (await _create(client))["session_id"]
        await client.post(f"/sessions/{session_id}/begin")

        resp = await client.post(f"/sessions/{session_id}/begin")

        assert resp.status_code == 409
        assert resp.json()["error_code"] == "INVALID_SESSION_STATE"

    @pytest.mark.asyncio
    async def test_unknown_session(self, client: AsyncClient):
        resp = await client.get("/sessions/sess_missing")

        assert resp.status_code == 404
        assert resp.json()["error_code"] == "SESSION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_submit_without_answer(self, client: AsyncClient):
        session_id = (await _create(client))["session_id"]
        await client.post(f"/sessions/{session_id}/begin")

        resp = await client.post(f"/sessions/{session_id}/submit")

        assert resp.status_code == 200
        assert resp.json()["submitted"] is False
        assert resp.json()["message"] == "Nothing to submit"


# =============================================================================
# Side Channels
# =============================================================================

class TestSideChannels:
    @pytest.mark.asyncio
    async def test_mute(self, client: AsyncClient):
        session_id = (await _create(client))["session_id"]
        await client.post(f"/sessions/{session_id}/begin")

        resp = await client.post(f"/sessions/{session_id}/mute", json={"muted": True})

        assert resp.json()["session"]["muted"] is True

    @pytest.mark.asyncio
    async def test_proctoring_violations_terminate(self, client: AsyncClient):
        session_id = (await _create(client))["session_id"]
        await client.post(f"/sessions/{session_id}/begin")

        for expected in (1, 2, 3):
            resp = await client.post(
                f"/sessions/{session_id}/proctoring",
                json={"gesture": "looking_left", "objects": ["person"]},
            )
            assert resp.json()["violation_count"] == expected

        status = resp.json()["session"]
        assert status["screen"] == "complete"
        assert status["outcome"] == "terminated_for_cause"

    @pytest.mark.asyncio
    async def test_end_session(self, client: AsyncClient):
        session_id = (await _create(client))["session_id"]
        await client.post(f"/sessions/{session_id}/begin")
        await client.post(
            f"/sessions/{session_id}/transcript",
            json={"text": "I was saying", "is_final": False},
        )

        resp = await client.post(f"/sessions/{session_id}/end", json={})

        status = resp.json()["session"]
        assert status["outcome"] == "candidate_left"
        assert status["screen"] == "complete"


class TestFinishedSessions:
    @pytest.mark.asyncio
    async def test_oldest_finished_sessions_are_dropped(self, tmp_path: Path):
        publisher = SessionEventPublisher()
        spec, _ = load_interview_spec(str(SPECS_DIR / "technical.json"))
        app = create_app(
            spec,
            session_factory=fake_session_factory(FakeEvaluator()),
            publisher=publisher,
            output_dir=tmp_path,
            finished_session_limit=1,
        )
        async for client in _client_for(app):
            first = (await _create(client))["session_id"]
            second = (await _create(client))["session_id"]
            live = (await _create(client))["session_id"]
            for session_id in (first, second):
                await client.post(f"/sessions/{session_id}/begin")
                await client.post(f"/sessions/{session_id}/end", json={})

            assert (await client.get(f"/sessions/{first}")).status_code == 404
            assert (await client.get(f"/sessions/{first}/events")).status_code == 404
            assert await publisher.get_history(first) == []

            resp = await client.get(f"/sessions/{second}")
            assert resp.json()["session"]["screen"] == "complete"
            assert (await client.get(f"/sessions/{second}/events")).json()["events"]
            assert (await client.get(f"/sessions/{live}")).status_code == 200

            health = (await client.get("/health")).json()
            assert health["active_sessions"] == 1
            assert (tmp_path / f"{first}_session.json").exists()


class TestQuestionsUnavailable:
    @pytest.mark.asyncio
    async def test_no_generated_questions(self, tmp_path: Path):
        spec, _ = load_interview_spec(str(SPECS_DIR / "behavioral.json"))
        app = create_app(
            spec,
            session_factory=fake_session_factory(generated=[]),
            publisher=SessionEventPublisher(),
            output_dir=tmp_path,
        )
        async for client in _client_for(app):
            resp = await client.post("/sessions", json={"consent": True})

            assert resp.status_code == 503
            assert resp.json()["error_code"] == "QUESTIONS_UNAVAILABLE"


# =============================================================================
# Configuration
# =============================================================================

class TestServiceConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.setenv("INTERVIEW_SPEC_PATH", str(SPECS_DIR / "technical.json"))
        for name in ("SERVICE_HOST", "SERVICE_PORT", "SESSION_OUTPUT_DIR"):
            monkeypatch.delenv(name, raising=False)

        config = load_service_config()

        assert config.host == "0.0.0.0"
        assert config.port == 8780
        assert config.output_dir.name == "output"

    def test_spec_path_required(self, monkeypatch):
        monkeypatch.delenv("INTERVIEW_SPEC_PATH", raising=False)

        with pytest.raises(RuntimeError, match="INTERVIEW_SPEC_PATH"):
            load_service_config()

    @pytest.mark.parametrize("port", ["abc", "0", "70000"])
    def test_invalid_port(self, monkeypatch, port: str):
        monkeypatch.setenv("INTERVIEW_SPEC_PATH", "spec.json")
        monkeypatch.setenv("SERVICE_PORT", port)

        with pytest.raises(RuntimeError, match="SERVICE_PORT"):
            load_service_config()

    def test_output_dir_override(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("INTERVIEW_SPEC_PATH", "spec.json")
        monkeypatch.setenv("SESSION_OUTPUT_DIR", str(tmp_path / "records"))

        assert load_service_config().output_dir == tmp_path / "records"
