"""
Canned interview content shared by variants and the offline simulator.
"""

from __future__ import annotations

from interview_engine.models import QuestionCategory
from variants.base import SampleQuestion


TECHNICAL_SAMPLE_QUESTIONS: tuple[SampleQuestion, ...] = (
    SampleQuestion(
        id="tech_intro",
        text="Tell me about yourself and the backend systems you have worked on.",
        category=QuestionCategory.NON_TECHNICAL,
        scripted_answer=(
            "I have six years of Python experience building backend systems "
            "and data services, most recently an event pipeline."
        ),
    ),
    SampleQuestion(
        id="tech_indexing",
        text="Explain how a database index speeds up queries and what it costs.",
        category=QuestionCategory.TECHNICAL,
        ideal_answer=(
            "An index is an auxiliary structure, usually a B-tree, that lets the "
            "engine find rows by key in logarithmic time instead of scanning the "
            "table. It costs extra storage and slows writes because every insert "
            "and update must also maintain the index."
        ),
        scripted_answer=(
            "An index is usually a B-tree keyed on the column, so lookups are "
            "logarithmic instead of a full scan. The tradeoff is storage and "
            "slower writes since the index must be updated too."
        ),
    ),
    SampleQuestion(
        id="tech_gil",
        text="What is the Python global interpreter lock and when does it matter?",
        category=QuestionCategory.TECHNICAL,
        ideal_answer=(
            "The GIL is a mutex in CPython that lets only one thread execute "
            "bytecode at a time. It limits CPU-bound threading but matters little "
            "for I/O-bound work; multiprocessing or native extensions sidestep it."
        ),
        scripted_answer="I'm not sure, I think it is something about imports.",
    ),
    SampleQuestion(
        id="tech_idempotency",
        text="How would you make a message consumer idempotent?",
        category=QuestionCategory.TECHNICAL,
        ideal_answer=(
            "Give every message a unique id and record processed ids in the same "
            "transaction as the side effect, or make the side effect itself an "
            "upsert, so redelivery has no additional effect."
        ),
        scripted_answer=(
            "I store the message id with the write in one transaction and skip "
            "ids I've already seen, so retries are harmless."
        ),
    ),
    SampleQuestion(
        id="tech_outro",
        text="Do you have any questions for us about the team or the role?",
        category=QuestionCategory.NON_TECHNICAL,
        scripted_answer="Yes, what does success look like in the first six months?",
    ),
)


BEHAVIORAL_SAMPLE_QUESTIONS: tuple[SampleQuestion, ...] = (
    SampleQuestion(
        id="hr_intro",
        text="Tell me about yourself and what you are looking for in your next role.",
        category=QuestionCategory.NON_TECHNICAL,
        ideal_answer=(
            "Rubric: concise career summary, clear motivation, connection to the role."
        ),
        scripted_answer=(
            "I've led backend teams for three years and want a role with more "
            "ownership of product direction."
        ),
    ),
    SampleQuestion(
        id="hr_conflict",
        text="Describe a time you disagreed with a teammate and how it was resolved.",
        category=QuestionCategory.NON_TECHNICAL,
        ideal_answer=(
            "Rubric: specific situation, listens to the other view, uses data, "
            "reaches a resolution, reflects on the outcome."
        ),
        scripted_answer=(
            "We disagreed on a database choice, so I built a benchmark comparison "
            "and we picked the option the data supported; it shipped on time."
        ),
    ),
    SampleQuestion(
        id="hr_failure",
        text="Tell me about a project that failed and what you learned from it.",
        category=QuestionCategory.NON_TECHNICAL,
        ideal_answer=(
            "Rubric: owns the failure, explains root cause, concrete lesson, "
            "evidence the lesson was applied later."
        ),
        scripted_answer="Nothing really failed.",
    ),
    SampleQuestion(
        id="hr_outro",
        text="Is there anything else you'd like to add or any questions for us?",
        category=QuestionCategory.NON_TECHNICAL,
        ideal_answer="Rubric: thoughtful questions about the team, role or growth.",
        scripted_answer="How does the team give feedback to new hires?",
    ),
)
