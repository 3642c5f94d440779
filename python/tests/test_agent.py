"""
Tests for the LLM collaborator adapter.

Runner.run is monkeypatched so no network calls are made; the tests cover
prompt assembly, output normalization and the fail-closed behavior.

Last Grunted: 10/19/2026
"""

from __future__ import annotations

from typing import Any

import pytest

import interview_engine.agent as agent_module
from interview_engine.agent import (
    ClosingOutput,
    DepthQuestionsOutput,
    EvaluationOutput,
    FollowupOutput,
    GeneratedQuestion,
    IdealAnswerOutput,
    InterviewLlmAgent,
    QuestionListOutput,
)
from interview_engine.models import FollowupTone, InterviewType, RouteAction
from tests.mock_data import make_question


class FakeRunResult:
    def __init__(self, output: Any) -> None:
        self.output = output

    def final_output_as(self, cls: type) -> Any:
        return self.output


class FakeRunner:
    """Replaces Runner.run; records (agent name, prompt) pairs."""

    def __init__(self, output: Any = None, fail: bool = False) -> None:
        self.output = output
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def run(self, agent, prompt: str) -> FakeRunResult:
        self.calls.append((agent.name, prompt))
        if self.fail:
            raise RuntimeError("model unavailable")
        return FakeRunResult(self.output)


@pytest.fixture(autouse=True)
def openai_env(monkeypatch):
    for name in ("AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY", "AZURE_OPENAI_DEPLOYMENT", "OPENAI_API_TYPE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")


def _agent(monkeypatch, output: Any = None, fail: bool = False, **kwargs) -> tuple[InterviewLlmAgent, FakeRunner]:
    runner = FakeRunner(output, fail)
    monkeypatch.setattr(agent_module.Runner, "run", runner.run)
    kwargs.setdefault("interview_type", InterviewType.TECHNICAL)
    return InterviewLlmAgent(**kwargs), runner


# =============================================================================
# Configuration
# =============================================================================

class TestConfiguration:
    def test_openai_model_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o-mini")

        agent, _ = _agent(monkeypatch)

        assert agent.model == "gpt-4o-mini"
        assert agent._model_settings.reasoning is None

    def test_reasoning_models_get_reasoning_settings(self, monkeypatch):
        agent, _ = _agent(monkeypatch, model="gpt-5-mini", reasoning_effort="medium")

        assert agent._model_settings.reasoning.effort == "medium"

    def test_azure_deployment_used_as_model(self, monkeypatch):
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
        monkeypatch.setenv("AZURE_OPENAI_KEY", "azure-key")
        monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT", "interview-gpt")

        agent, _ = _agent(monkeypatch)

        assert agent.model == "interview-gpt"
        assert agent._azure_client is not None

    def test_incomplete_azure_config_fails(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_TYPE", "azure")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")

        with pytest.raises(ValueError, match="AZURE_OPENAI_DEPLOYMENT"):
            _agent(monkeypatch)


# =============================================================================
# Evaluator
# =============================================================================

class TestEvaluate:
    @pytest.mark.asyncio
    async def test_score_clamped_and_route_mapped(self, monkeypatch):
        output = EvaluationOutput(score=130, reason="  Thorough.  ", route_action="next_difficulty")
        agent, runner = _agent(monkeypatch, output)
        question = make_question("q1", "How does a B-tree index work?")

        result = await agent.evaluate(question, "Balanced tree of pages.", "It sorts keys in pages.")

        assert result.score == 100
        assert result.reason == "Thorough."
        assert result.route_action == RouteAction.NEXT_DIFFICULTY
        name, prompt = runner.calls[0]
        assert name == "Answer Evaluator"
        assert "How does a B-tree index work?" in prompt
        assert "Balanced tree of pages." in prompt
        assert "It sorts keys in pages." in prompt

    @pytest.mark.asyncio
    async def test_route_action_outside_interview_type(self, monkeypatch):
        """Behavioral actions are not valid for technical interviews."""
        output = EvaluationOutput(score=90, reason="Good", route_action="followup_positive")
        agent, _ = _agent(monkeypatch, output)

        result = await agent.evaluate(make_question("q1"), "ideal", "answer")

        assert result.route_action == RouteAction.NORMAL_FLOW

    @pytest.mark.asyncio
    async def test_behavioral_route_action(self, monkeypatch):
        output = EvaluationOutput(score=10, reason="Vague", route_action="FOLLOWUP_NEGATIVE")
        agent, _ = _agent(monkeypatch, output, interview_type=InterviewType.BEHAVIORAL)

        result = await agent.evaluate(make_question("hr_1"), "rubric", "answer")

        assert result.route_action == RouteAction.FOLLOWUP_NEGATIVE

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, monkeypatch):
        agent, _ = _agent(monkeypatch, fail=True)

        assert await agent.evaluate(make_question("q1"), "ideal", "answer") is None


# =============================================================================
# Generators
# =============================================================================

class TestGenerators:
    @pytest.mark.asyncio
    async def test_ideal_answer(self, monkeypatch):
        output = IdealAnswerOutput(ideal_answer=" Use a B-tree. ", sources=["https://a.example", "  "])
        agent, _ = _agent(monkeypatch, output)

        ideal = await agent.generate_ideal_answer("How do indexes work?")

        assert ideal.ideal_answer == "Use a B-tree."
        assert ideal.sources == ["https://a.example"]

    @pytest.mark.asyncio
    async def test_blank_ideal_answer_is_none(self, monkeypatch):
        agent, _ = _agent(monkeypatch, IdealAnswerOutput(ideal_answer="   "))

        assert await agent.generate_ideal_answer("Q") is None

    @pytest.mark.asyncio
    async def test_followup_includes_tone(self, monkeypatch):
        agent, runner = _agent(monkeypatch, FollowupOutput(question="What about page splits?"))

        text = await agent.generate_followup("How do indexes work?", "Sorted keys.", FollowupTone.PROBING)

        assert text == "What about page splits?"
        assert "probing" in runner.calls[0][1]

    @pytest.mark.asyncio
    async def test_blank_followup_is_none(self, monkeypatch):
        agent, _ = _agent(monkeypatch, FollowupOutput(question=" "))

        assert await agent.generate_followup("Q", "A", FollowupTone.CORRECTIVE) is None

    @pytest.mark.asyncio
    async def test_depth_questions(self, monkeypatch):
        agent, _ = _agent(monkeypatch, DepthQuestionsOutput(medium=" Medium? ", hard="Hard?"))

        depth = await agent.generate_depth_questions("Base?", "Ideal.")

        assert depth == {"medium": "Medium?", "hard": "Hard?"}

    @pytest.mark.asyncio
    async def test_question_list(self, monkeypatch):
        output = QuestionListOutput(
            questions=[
                GeneratedQuestion(text="Tell me about yourself.", category="non-technical"),
                GeneratedQuestion(text="What is a mutex?", category="technical"),
            ]
        )
        agent, runner = _agent(monkeypatch, output)

        questions = await agent.generate_questions(InterviewType.TECHNICAL, {"role": "Backend"})

        assert questions == [
            {"text": "Tell me about yourself.", "category": "non-technical"},
            {"text": "What is a mutex?", "category": "technical"},
        ]
        assert '"role": "Backend"' in runner.calls[0][1]

    @pytest.mark.asyncio
    async def test_question_list_failure_is_empty(self, monkeypatch):
        agent, _ = _agent(monkeypatch, fail=True)

        assert await agent.generate_questions(InterviewType.TECHNICAL, {}) == []

    @pytest.mark.asyncio
    async def test_closing_uses_recent_exchanges(self, monkeypatch):
        agent, runner = _agent(monkeypatch, ClosingOutput(message="Thanks, Sarah!"))
        transcript = [{"question": f"Q{i}", "answer": f"A{i}"} for i in range(6)]
        transcript[-1]["answer"] = "x" * 400

        message = await agent.generate_closing_message("Sarah", transcript)

        assert message == "Thanks, Sarah!"
        prompt = runner.calls[0][1]
        assert "Q1" not in prompt
        assert "Q2" in prompt
        assert "x" * 300 + "..." in prompt
        assert "x" * 301 not in prompt
