"""
Technical variant plugin.
"""

from __future__ import annotations

from interview_engine.models import InterviewType
from variants.base import BaseVariantPlugin
from variants.shared_content import TECHNICAL_SAMPLE_QUESTIONS


class TechnicalVariantPlugin(BaseVariantPlugin):
    """Technical screen with depth progression."""

    variant_id = "technical"
    display_name = "Technical Screen"
    interview_type = InterviewType.TECHNICAL
    depth_enabled = True
    spec_file = "technical.json"
    question_focus = (
        "Mostly technical questions answerable aloud, with at most 20% non-technical."
    )
    question_count = 12
    sample_questions = TECHNICAL_SAMPLE_QUESTIONS
