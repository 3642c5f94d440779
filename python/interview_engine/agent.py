"""
LLM collaborator adapter using OpenAI Agents SDK.

One class, InterviewLlmAgent, implements the Evaluator, FollowupGenerator,
DepthQuestionGenerator and QuestionGenerator contracts with structured
outputs. Every call fails closed: any SDK, network or validation failure is
logged and turned into None (or an empty list) so the engine falls back to
its neutral defaults.

Supports both OpenAI and Azure OpenAI backends:
  - OpenAI: Set OPENAI_API_KEY
  - Azure OpenAI: Set AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, AZURE_OPENAI_DEPLOYMENT

Last Grunted: 10/19/2026
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, TypeVar

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from agents import Agent, ModelSettings, OpenAIChatCompletionsModel, Runner
from openai import AsyncAzureOpenAI
from openai.types.shared import Reasoning

from .models import (
    EvaluationResult,
    FollowupTone,
    IdealAnswer,
    InterviewType,
    Question,
    RouteAction,
)


# Load environment variables from .env file
_env_path = Path(__file__).parent.parent / ".env"
load_dotenv(_env_path)

logger = logging.getLogger(__name__)

OutputT = TypeVar("OutputT", bound=BaseModel)


def _get_openai_config() -> tuple[str, Optional[AsyncAzureOpenAI]]:
    """
    Determine OpenAI configuration based on environment variables.

    Returns:
        Tuple of (model_name, azure_client_or_none)

    Azure OpenAI requires:
        - AZURE_OPENAI_ENDPOINT: The endpoint URL
        - AZURE_OPENAI_KEY: The API key
        - AZURE_OPENAI_DEPLOYMENT: The deployment name (used as model)

    Standard OpenAI requires:
        - OPENAI_API_KEY: The API key
        - OPENAI_MODEL (optional): Model name, defaults to gpt-5-mini
    """
    azure_endpoint = os.environ.get("AZURE_OPENAI_ENDPOINT")
    azure_key = os.environ.get("AZURE_OPENAI_KEY")
    azure_deployment = os.environ.get("AZURE_OPENAI_DEPLOYMENT")
    api_type = os.environ.get("OPENAI_API_TYPE", "").lower()

    if api_type == "azure" or (azure_endpoint and azure_key and azure_deployment):
        if not all([azure_endpoint, azure_key, azure_deployment]):
            raise ValueError(
                "Azure OpenAI requires AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_KEY, "
                "and AZURE_OPENAI_DEPLOYMENT environment variables"
            )

        logger.info("Using Azure OpenAI: %s, deployment: %s", azure_endpoint, azure_deployment)

        azure_client = AsyncAzureOpenAI(
            azure_endpoint=azure_endpoint,
            api_key=azure_key,
            api_version=os.environ.get("AZURE_OPENAI_API_VERSION", "2024-08-01-preview"),
        )
        return azure_deployment, azure_client

    model = os.environ.get("OPENAI_MODEL", "gpt-5-mini")
    logger.info("Using OpenAI: model %s", model)
    return model, None


DEFAULT_REASONING_EFFORT = os.environ.get("OPENAI_REASONING_EFFORT", "low")


# =============================================================================
# Structured Output Models for Agents
# =============================================================================

class EvaluationOutput(BaseModel):
    """Evaluator verdict on one answer."""
    score: float = Field(..., description="Correctness from 0 to 100")
    reason: str = Field(..., description="One or two sentences justifying the score")
    route_action: str = Field(
        default="normal_flow",
        description="Suggested routing: next_difficulty, normal_flow, followup, "
                    "followup_negative or followup_positive",
    )


class IdealAnswerOutput(BaseModel):
    ideal_answer: str = Field(..., description="Ideal answer or evaluation rubric")
    sources: list[str] = Field(default_factory=list, description="Reference URLs, may be empty")


class FollowupOutput(BaseModel):
    question: str = Field(..., description="A single follow-up question")


class DepthQuestionsOutput(BaseModel):
    medium: str = Field(..., description="A harder variant of the base question")
    hard: str = Field(..., description="The hardest variant of the base question")


class GeneratedQuestion(BaseModel):
    text: str
    category: str = Field(..., description="'technical' or 'non-technical'")


class QuestionListOutput(BaseModel):
    questions: list[GeneratedQuestion] = Field(default_factory=list)


class ClosingOutput(BaseModel):
    message: str = Field(..., description="Two or three warm closing sentences")


# =============================================================================
# Agent Instructions
# =============================================================================

EVALUATOR_INSTRUCTIONS = {
    InterviewType.TECHNICAL: (
        "You grade spoken answers in a technical interview. Compare the candidate's "
        "answer with the ideal answer and score factual correctness and completeness "
        "from 0 to 100. Transcripts come from speech-to-text, so ignore filler words "
        "and transcription noise. Suggest next_difficulty for strong answers, "
        "followup for very weak ones and normal_flow otherwise."
    ),
    InterviewType.BEHAVIORAL: (
        "You grade spoken answers in an HR interview against the given rubric. Score "
        "0 to 100 for how well the answer demonstrates the rubric's signals with a "
        "concrete example. Suggest followup_negative for weak answers, "
        "followup_positive for excellent ones and normal_flow otherwise."
    ),
}

IDEAL_ANSWER_INSTRUCTIONS = {
    InterviewType.TECHNICAL: (
        "Write a concise ideal answer to the interview question, as an expert would "
        "say it aloud in under two minutes, and list up to three authoritative "
        "reference URLs."
    ),
    InterviewType.BEHAVIORAL: (
        "Write an evaluation rubric for the HR interview question: the signals a "
        "strong answer shows and the red flags of a weak one. Sources may be empty."
    ),
}

FOLLOWUP_INSTRUCTIONS = (
    "You are a voice interviewer. Ask exactly one short follow-up question about the "
    "candidate's last answer. A corrective follow-up helps a struggling candidate "
    "approach the topic from a simpler angle; a probing follow-up digs deeper into a "
    "strong answer."
)

DEPTH_INSTRUCTIONS = (
    "Given a technical interview question and its ideal answer, write two deeper "
    "questions on the same topic: a medium one and a hard one. Each must be "
    "answerable aloud without code."
)

QUESTION_LIST_INSTRUCTIONS = (
    "Draft the question list for a voice interview. Include an introduction question "
    "first and a closing 'any questions for us' question last. Mark each question as "
    "technical or non-technical."
)

CLOSING_INSTRUCTIONS = (
    "Write a short, warm closing statement for the end of a voice interview. Thank the "
    "candidate by name and say that the team will follow up. Do not evaluate them."
)


def _route_action_for(raw: str, interview_type: InterviewType) -> RouteAction:
    allowed = {
        InterviewType.TECHNICAL: {
            RouteAction.NEXT_DIFFICULTY,
            RouteAction.NORMAL_FLOW,
            RouteAction.FOLLOWUP,
        },
        InterviewType.BEHAVIORAL: {
            RouteAction.FOLLOWUP_NEGATIVE,
            RouteAction.NORMAL_FLOW,
            RouteAction.FOLLOWUP_POSITIVE,
        },
    }[interview_type]
    try:
        action = RouteAction((raw or "").strip().lower())
    except ValueError:
        return RouteAction.NORMAL_FLOW
    return action if action in allowed else RouteAction.NORMAL_FLOW


class InterviewLlmAgent:
    """
    LLM-backed collaborator for the interview engine.

    Example:
        >>> agent = InterviewLlmAgent(InterviewType.TECHNICAL)
        >>> result = await agent.evaluate(question, question.ideal_answer, "An index is ...")
        >>> result.score if result else "unscored"
    """

    def __init__(
        self,
        interview_type: InterviewType,
        model: Optional[str] = None,
        azure_client: Optional[AsyncAzureOpenAI] = None,
        reasoning_effort: Optional[str] = None,
    ) -> None:
        """
        Initialize the agent set.

        Args:
            interview_type: Selects evaluator and ideal-answer instructions.
            model: Model/deployment to use. If None, resolved from environment.
            azure_client: Optional Azure OpenAI client. If None and Azure is
                          configured via environment, one is created.
            reasoning_effort: Reasoning effort for reasoning models ("low", "medium", "high").
        """
        default_model, default_azure = (None, None) if model and azure_client else _get_openai_config()
        self.interview_type = interview_type
        self.model = model or default_model
        self._azure_client = azure_client or default_azure
        self.reasoning_effort = reasoning_effort or DEFAULT_REASONING_EFFORT

        if not self._azure_client and not os.environ.get("OPENAI_API_KEY"):
            logger.warning(
                "No OpenAI credentials configured. Set OPENAI_API_KEY or the "
                "AZURE_OPENAI_* variables; every LLM call will fall back."
            )

        lowered = self.model.lower()
        self._model_settings = (
            ModelSettings(reasoning=Reasoning(effort=self.reasoning_effort))
            if "gpt-5" in lowered or "o1" in lowered or "o3" in lowered
            else ModelSettings()
        )

        self._evaluator = self._build_agent(
            "Answer Evaluator", EVALUATOR_INSTRUCTIONS[interview_type], EvaluationOutput
        )
        self._ideal = self._build_agent(
            "Ideal Answer Writer", IDEAL_ANSWER_INSTRUCTIONS[interview_type], IdealAnswerOutput
        )
        self._followup = self._build_agent("Follow-up Writer", FOLLOWUP_INSTRUCTIONS, FollowupOutput)
        self._depth = self._build_agent("Depth Question Writer", DEPTH_INSTRUCTIONS, DepthQuestionsOutput)
        self._questions = self._build_agent(
            "Question List Writer", QUESTION_LIST_INSTRUCTIONS, QuestionListOutput
        )
        self._closing = self._build_agent("Closing Writer", CLOSING_INSTRUCTIONS, ClosingOutput)

        provider_info = "Azure OpenAI" if self._azure_client else "OpenAI"
        logger.info("InterviewLlmAgent initialized with %s, model: %s", provider_info, self.model)

    def _build_agent(self, name: str, instructions: str, output_type: type[BaseModel]) -> Agent:
        model: Any = self.model
        if self._azure_client is not None:
            model = OpenAIChatCompletionsModel(model=self.model, openai_client=self._azure_client)
        return Agent(
            name=name,
            instructions=instructions,
            model=model,
            output_type=output_type,
            model_settings=self._model_settings,
        )

    async def _run(self, agent: Agent, prompt: str, output_type: type[OutputT]) -> Optional[OutputT]:
        try:
            result = await Runner.run(agent, prompt)
            return result.final_output_as(output_type)
        except Exception as exc:  # noqa: BLE001 - adapter fails closed
            logger.warning("%s failed: %s", agent.name, exc)
            return None

    # =========================================================================
    # Evaluator
    # =========================================================================

    async def evaluate(
        self,
        question: Question,
        ideal_answer_or_criteria: str,
        candidate_answer: str,
    ) -> Optional[EvaluationResult]:
        prompt = "\n".join([
            f"## QUESTION\n{question.text}",
            f"## IDEAL ANSWER / RUBRIC\n{ideal_answer_or_criteria}",
            f"## CANDIDATE ANSWER (speech transcript)\n{candidate_answer}",
        ])
        output = await self._run(self._evaluator, prompt, EvaluationOutput)
        if output is None:
            return None
        score = max(0.0, min(100.0, float(output.score)))
        return EvaluationResult(
            score=score,
            reason=output.reason.strip(),
            route_action=_route_action_for(output.route_action, self.interview_type),
        )

    async def generate_ideal_answer(self, question_text: str) -> Optional[IdealAnswer]:
        output = await self._run(self._ideal, f"## QUESTION\n{question_text}", IdealAnswerOutput)
        if output is None or not output.ideal_answer.strip():
            return None
        return IdealAnswer(
            ideal_answer=output.ideal_answer.strip(),
            sources=[s.strip() for s in output.sources if s.strip()],
        )

    # =========================================================================
    # Generators
    # =========================================================================

    async def generate_followup(
        self,
        question_text: str,
        candidate_answer: str,
        tone: FollowupTone,
    ) -> Optional[str]:
        prompt = "\n".join([
            f"## TONE\n{tone.value}",
            f"## QUESTION\n{question_text}",
            f"## CANDIDATE ANSWER\n{candidate_answer}",
        ])
        output = await self._run(self._followup, prompt, FollowupOutput)
        if output is None:
            return None
        return output.question.strip() or None

    async def generate_depth_questions(
        self,
        question_text: str,
        ideal_answer: str,
    ) -> Optional[dict[str, str]]:
        prompt = f"## QUESTION\n{question_text}\n## IDEAL ANSWER\n{ideal_answer}"
        output = await self._run(self._depth, prompt, DepthQuestionsOutput)
        if output is None:
            return None
        return {"medium": output.medium.strip(), "hard": output.hard.strip()}

    async def generate_questions(
        self,
        interview_type: InterviewType,
        context: dict[str, Any],
    ) -> list[dict[str, Any]]:
        prompt = "\n".join([
            f"## INTERVIEW TYPE\n{interview_type.value}",
            "## CONTEXT (role, resume summary, counts)",
            json.dumps(context, indent=2, default=str),
        ])
        output = await self._run(self._questions, prompt, QuestionListOutput)
        if output is None:
            return []
        return [q.model_dump() for q in output.questions]

    async def generate_closing_message(
        self,
        candidate_name: str,
        transcript: list[dict[str, Any]],
    ) -> Optional[str]:
        recent = transcript[-4:]
        lines = [f"## CANDIDATE\n{candidate_name}", "## LAST EXCHANGES"]
        for turn in recent:
            answer = str(turn.get("answer") or "")
            display = answer[:300] + "..." if len(answer) > 300 else answer
            lines.append(f"Q: {turn.get('question')}\nA: {display}")
        output = await self._run(self._closing, "\n".join(lines), ClosingOutput)
        if output is None:
            return None
        return output.message.strip() or None
