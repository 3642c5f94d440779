"""
Behavioral (HR) variant plugin.
"""

from __future__ import annotations

from typing import Any

from interview_engine.models import InterviewType
from variants.base import BaseVariantPlugin
from variants.shared_content import BEHAVIORAL_SAMPLE_QUESTIONS


class BehavioralVariantPlugin(BaseVariantPlugin):
    """HR interview scored against rubrics; no depth tier."""

    variant_id = "behavioral"
    display_name = "Behavioral Focus"
    interview_type = InterviewType.BEHAVIORAL
    depth_enabled = False
    spec_file = "behavioral.json"
    question_focus = "Prioritize ownership, collaboration, and communication signal."
    question_count = 8
    sample_questions = BEHAVIORAL_SAMPLE_QUESTIONS

    def build_question_context(self, base_context: dict[str, Any]) -> dict[str, Any]:
        enriched = super().build_question_context(base_context)
        enriched["answer_format"] = "Situation, task, action, result"
        return enriched
