"""
Tests for the scripted interview simulator.

Runs run_simulation against the real FastAPI app (fake collaborators behind
the session factory) through an ASGI-bound httpx client.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from interview_engine.pubsub import SessionEventPublisher
from interview_platform import SPECS_DIR, load_interview_spec
from interview_service import create_app
from simulate_interview import (
    END_REQUEST_ANSWER,
    EXIT_CONNECTION_ERROR,
    EXIT_SESSION_ERROR,
    EXIT_SUCCESS,
    GENERIC_ANSWER,
    answer_for,
    run_simulation,
)
from tests.mock_data import FakeEvaluator, fake_session_factory
from variants import load_variant


def _app(tmp_path: Path, spec_file: str, **factory_kwargs):
    spec, _ = load_interview_spec(str(SPECS_DIR / spec_file))
    return create_app(
        spec,
        session_factory=fake_session_factory(**factory_kwargs),
        publisher=SessionEventPublisher(),
        output_dir=tmp_path,
    )


# =============================================================================
# Answer Selection
# =============================================================================

class TestAnswerFor:
    """Scripted answer lookup."""

    def test_scripted_answer(self):
        variant = load_variant("technical")

        answer = answer_for({"id": "tech_indexing", "category": "technical"}, variant)

        assert answer == variant.scripted_answer("tech_indexing")

    def test_generated_question_gets_generic_answer(self):
        answer = answer_for({"id": "tech_gil_followup_1", "category": "technical"}, load_variant("technical"))

        assert answer == GENERIC_ANSWER

    def test_interruption_gets_end_answer(self):
        answer = answer_for({"id": "q0_mood_1", "category": "interruption"}, load_variant("behavioral"))

        assert answer == END_REQUEST_ANSWER


# =============================================================================
# End-to-end Runs
# =============================================================================

class TestRunSimulation:
    """Full scripted runs against the in-process service."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("spec_file", "variant_id", "first_id", "last_id"),
        [
            ("technical.json", "technical", "tech_intro", "tech_outro"),
            ("behavioral.json", "behavioral", "hr_intro", "hr_outro"),
        ],
    )
    async def test_completes_interview(
        self, tmp_path: Path, spec_file: str, variant_id: str, first_id: str, last_id: str
    ):
        app = _app(tmp_path, spec_file, evaluator=FakeEvaluator(default_score=60))
        async with LifespanManager(app) as manager:
            async with AsyncClient(transport=ASGITransport(app=manager.app), base_url="http://test") as client:
                exit_code, status = await run_simulation(
                    "http://test", "Sarah Chen", variant_id, client=client
                )

                assert not client.is_closed

        assert exit_code == EXIT_SUCCESS
        assert status["screen"] == "complete"
        assert status["outcome"] == "completed"
        assert status["closing_message"]

        record_files = list(tmp_path.glob("*_session.json"))
        assert len(record_files) == 1
        text = record_files[0].read_text(encoding="utf-8")
        assert first_id in text and last_id in text

    @pytest.mark.asyncio
    async def test_session_creation_failure(self):
        """A service that cannot create sessions yields a session error exit code."""

        def refuse_create(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/sessions":
                return httpx.Response(503, json={"ok": False, "error": "down"})
            return httpx.Response(200, json={"status": "healthy"})

        async with AsyncClient(transport=httpx.MockTransport(refuse_create), base_url="http://test") as client:
            exit_code, status = await run_simulation("http://test", "Sarah Chen", "technical", client=client)

        assert exit_code == EXIT_SESSION_ERROR
        assert status == {}

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://test") as client:
            exit_code, _ = await run_simulation("http://test", "Sarah Chen", "technical", client=client)

        assert exit_code == EXIT_CONNECTION_ERROR
