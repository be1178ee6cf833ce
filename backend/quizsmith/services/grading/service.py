"""Answer grading entry point.

Routes a submission to the multiple-choice scorer or the open-ended grader and
returns one immutable ``AnswerGrade`` record. Resubmissions are graded afresh
and tagged with the caller's retry index.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from pydantic import ConfigDict

from quizsmith.services.grading.open_ended import grade_open_ended
from quizsmith.services.grading.scoring import score_multiple_choice
from quizsmith.services.llm_service.llm_schemas import FinalQuestion, QuestionType, WireModel
from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient

logger = logging.getLogger(__name__)

OPEN_ENDED_SCORES = {"correct": 1.0, "partially_correct": 0.5, "incorrect": 0.0}


class AnswerGrade(WireModel):
    model_config = ConfigDict(frozen=True)

    question_type: QuestionType
    correctness: Literal["correct", "partially_correct", "incorrect"]
    score: float
    feedback: str
    followup: Optional[str] = None
    retry_index: int = 0
    grader: Dict[str, Any] = {}


async def grade_answer(
    question: FinalQuestion,
    user_answer: str,
    retry_index: int = 0,
    client: Optional[StructuredCompletionClient] = None,
) -> AnswerGrade:
    """Grade a learner's answer to *question*.

    Raises:
        ValueError: If the answer is blank or the retry index is negative.
    """
    if not isinstance(user_answer, str) or not user_answer.strip():
        raise ValueError("userAnswer is required.")
    if retry_index < 0:
        raise ValueError("retryIndex must be zero or positive.")

    if question.type == "multiple_choice":
        scored = score_multiple_choice(question.correct_choice_index, user_answer)
        return AnswerGrade(
            question_type=question.type,
            correctness=scored.correctness,
            score=scored.score,
            feedback="Correct choice." if scored.correctness == "correct" else "That choice is not correct.",
            retry_index=retry_index,
        )

    graded = await grade_open_ended(
        question.prompt,
        question.expected_answer,
        question.rubric,
        user_answer,
        client=client,
    )
    logger.info("Open-ended answer graded: %s (retry %d)", graded.correctness, retry_index)
    return AnswerGrade(
        question_type=question.type,
        correctness=graded.correctness,
        score=OPEN_ENDED_SCORES[graded.correctness],
        feedback=graded.explanation,
        followup=graded.followup,
        retry_index=retry_index,
        grader=graded.model_dump(by_alias=True),
    )
