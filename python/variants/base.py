"""
Variant plugin contract and shared base implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from interview_engine.models import InterviewType, Question, QuestionCategory


@dataclass(frozen=True)
class SampleQuestion:
    """Canned main question with its ideal answer or rubric."""

    id: str
    text: str
    category: QuestionCategory
    ideal_answer: str | None = None
    scripted_answer: str = ""

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            text=self.text,
            category=self.category,
            ideal_answer=self.ideal_answer,
        )


class VariantPlugin(Protocol):
    """Interview-type plugin consumed by the service and the simulator."""

    variant_id: str
    display_name: str
    interview_type: InterviewType
    depth_enabled: bool
    spec_file: str
    sample_questions: tuple[SampleQuestion, ...]

    def build_question_context(self, base_context: dict[str, Any]) -> dict[str, Any]:
        """Add type-specific guidance to the question-generation context."""

    def sample_main_questions(self) -> list[Question]:
        """Fresh Question objects for the canned question set."""

    def scripted_answer(self, question_id: str) -> str:
        """Canned candidate answer used by the offline simulator."""


class BaseVariantPlugin:
    """Default behavior shared by all variants."""

    variant_id = "base"
    display_name = "Base"
    interview_type = InterviewType.TECHNICAL
    depth_enabled = False
    spec_file = ""
    question_focus = ""
    question_count = 10
    sample_questions: tuple[SampleQuestion, ...] = ()

    def build_question_context(self, base_context: dict[str, Any]) -> dict[str, Any]:
        enriched = dict(base_context)
        enriched["interview_mode"] = self.interview_type.value
        enriched.setdefault("question_count", self.question_count)
        if self.question_focus:
            enriched["question_focus"] = self.question_focus
        return enriched

    def sample_main_questions(self) -> list[Question]:
        return [sample.to_question() for sample in self.sample_questions]

    def scripted_answer(self, question_id: str) -> str:
        for sample in self.sample_questions:
            if sample.id == question_id:
                return sample.scripted_answer
        return ""
