"""Trouble-question quizzes built from questions a learner previously missed.

Two modes:
- ``reuse_exact``: the missed questions are served again verbatim.
- ``regenerate_similar``: the pipeline runs again over the original sources
  with the missed prompts as focus prompts.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Literal, Optional

from quizsmith.core.config import settings
from quizsmith.services.llm_service.llm_schemas import FinalQuestion, FinalQuiz, QuestionType, WireModel
from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient
from quizsmith.services.quiz.generator import GenerationResult, QuizGenerationRequest, generate_quiz_iteratively
from quizsmith.services.quiz.sizing import clamp_question_count
from quizsmith.services.quiz.sources import Source

logger = logging.getLogger(__name__)

TroubleMode = Literal["reuse_exact", "regenerate_similar"]

TROUBLE_TOPIC = "Targeted Review"


class MissedQuestion(WireModel):
    prompt: str
    type: QuestionType = "open_ended"
    choices: Optional[List[str]] = None
    correct_choice_index: Optional[int] = None
    expected_answer: Optional[str] = None
    rubric: Optional[str] = None
    explanation: Optional[str] = None
    miss_count: int = 1


def _require_candidates(candidates: Iterable[MissedQuestion]) -> List[MissedQuestion]:
    materialised = list(candidates or [])
    if not materialised:
        raise ValueError("No missed questions found yet. Complete at least one quiz attempt first.")
    return materialised


def build_reuse_quiz(
    candidates: Iterable[MissedQuestion],
    question_count: Optional[int] = None,
    title: Optional[str] = None,
) -> FinalQuiz:
    """Serve previously missed questions again, most-missed first as given."""
    candidates = _require_candidates(candidates)
    limit = clamp_question_count(question_count) if question_count is not None else settings.MAX_QUESTION_COUNT
    selected = candidates[:limit]
    return FinalQuiz(
        title=(title or "").strip() or "Trouble Questions Practice",
        topic=TROUBLE_TOPIC,
        summary="A focused quiz built from questions you have previously missed.",
        questions=[
            FinalQuestion.model_validate(item.model_dump(exclude={"miss_count"}))
            for item in selected
        ],
    )


async def regenerate_trouble_quiz(
    candidates: Iterable[MissedQuestion],
    sources: Iterable[Source],
    question_count: Optional[int] = None,
    title: Optional[str] = None,
    client: Optional[StructuredCompletionClient] = None,
) -> GenerationResult:
    """Regenerate a quiz from the original sources, focused on missed prompts."""
    candidates = _require_candidates(candidates)
    focus_prompts = [item.prompt for item in candidates[: settings.FOCUS_PROMPT_LIMIT]]
    logger.info("Regenerating trouble quiz from %d missed prompt(s)", len(focus_prompts))
    request = QuizGenerationRequest(
        sources=list(sources or []),
        title=(title or "").strip() or "Trouble Questions Remix",
        description="A regenerated quiz focused on your most-missed concepts.",
        topic=TROUBLE_TOPIC,
        auto_metadata=False,
        question_count=clamp_question_count(question_count) if question_count is not None else None,
        focus_prompts=focus_prompts,
    )
    return await generate_quiz_iteratively(request, client=client)
