"""LLM-adjudicated grading of open-ended answers."""

from __future__ import annotations

import logging
from typing import Optional

from quizsmith.prompts import get_grade_prompt
from quizsmith.services.llm_service.llm_schemas import OpenEndedGrade
from quizsmith.services.llm_service.structured_invoker import (
    StructuredCompletionClient,
    system_message,
    user_message,
)

logger = logging.getLogger(__name__)

# Characters of the expected answer a learner answer must contain to count as a match offline
FALLBACK_MATCH_PREFIX = 12
FALLBACK_FOLLOWUP = "Revisit the source and include one concrete example in your next attempt."


def fallback_open_ended_grade(expected_answer: Optional[str], user_answer: str) -> OpenEndedGrade:
    """Lenient containment heuristic; never returns ``incorrect``."""
    expected = (expected_answer or "").lower()
    learner = (user_answer or "").lower()
    match = bool(expected) and expected[:FALLBACK_MATCH_PREFIX] in learner
    return OpenEndedGrade(
        correctness="correct" if match else "partially_correct",
        confidence=0.8 if match else 0.55,
        explanation=(
            "Your answer aligns with the expected concept."
            if match
            else "Your answer is on the right track but misses key expected details."
        ),
        followup=FALLBACK_FOLLOWUP,
    )


async def grade_open_ended(
    prompt: str,
    expected_answer: Optional[str],
    rubric: Optional[str],
    user_answer: str,
    client: Optional[StructuredCompletionClient] = None,
) -> OpenEndedGrade:
    """Grade *user_answer* against the question, expected answer and rubric.

    Raises:
        ProviderUnavailableError / StructuredOutputError: from the client.
    """
    client = client or StructuredCompletionClient()
    messages = [
        system_message("You are a strict but supportive quiz grader. Return JSON only."),
        user_message(get_grade_prompt(prompt, expected_answer, rubric, user_answer)),
    ]
    grade = await client.complete_structured(
        messages,
        OpenEndedGrade,
        lambda: fallback_open_ended_grade(expected_answer, user_answer),
    )
    logger.debug("Open-ended answer graded %s (confidence %.2f)", grade.correctness, grade.confidence)
    return grade
