"""Quiz generation, grading, coaching and trouble-quiz routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from quizsmith.services.chat.coach import QuizChatRequest, generate_quiz_chat_reply
from quizsmith.services.grading.service import grade_answer
from quizsmith.services.llm_service.llm_schemas import FinalQuestion, WireModel
from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient
from quizsmith.services.quiz.generator import QuizGenerationRequest, generate_quiz_iteratively
from quizsmith.services.quiz.sources import Source
from quizsmith.services.quiz.trouble import (
    MissedQuestion,
    TroubleMode,
    build_reuse_quiz,
    regenerate_trouble_quiz,
)
from .utils import get_completion_client, to_http_exception

logger = logging.getLogger(__name__)
router = APIRouter()


class GradeRequest(WireModel):
    question: FinalQuestion
    user_answer: str
    retry_index: int = 0


class TroubleQuizRequest(WireModel):
    mode: TroubleMode
    candidates: List[MissedQuestion] = []
    sources: List[Source] = []
    question_count: Optional[int] = None
    title: Optional[str] = None


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, exclude_none=True)


@router.post("/quiz/generate")
async def generate_quiz(
    request: QuizGenerationRequest,
    client: StructuredCompletionClient = Depends(get_completion_client),
):
    logger.info("Quiz generation request received (%d source(s))", len(request.sources))
    try:
        result = await generate_quiz_iteratively(request, client=client)
    except Exception as e:
        raise to_http_exception(e, "Quiz generation")
    logger.info("Quiz generated with %d question(s)", len(result.quiz.questions))
    return JSONResponse(content=_dump(result))


@router.post("/quiz/grade")
async def grade(
    request: GradeRequest,
    client: StructuredCompletionClient = Depends(get_completion_client),
):
    try:
        result = await grade_answer(
            request.question, request.user_answer, retry_index=request.retry_index, client=client
        )
    except Exception as e:
        raise to_http_exception(e, "Grading")
    return JSONResponse(content=_dump(result))


@router.post("/quiz/chat")
async def chat(
    request: QuizChatRequest,
    client: StructuredCompletionClient = Depends(get_completion_client),
):
    try:
        reply = await generate_quiz_chat_reply(request, client=client)
    except Exception as e:
        raise to_http_exception(e, "Quiz chat")
    return JSONResponse(content=_dump(reply))


@router.post("/quiz/trouble")
async def trouble_quiz(
    request: TroubleQuizRequest,
    client: StructuredCompletionClient = Depends(get_completion_client),
):
    try:
        if request.mode == "reuse_exact":
            quiz = build_reuse_quiz(request.candidates, request.question_count, request.title)
            return JSONResponse(content={
                "quiz": _dump(quiz),
                "selectionSummary": {
                    "weakPromptCount": len(request.candidates),
                    "selectedQuestionCount": len(quiz.questions),
                },
            })

        result = await regenerate_trouble_quiz(
            request.candidates,
            request.sources,
            question_count=request.question_count,
            title=request.title,
            client=client,
        )
    except Exception as e:
        raise to_http_exception(e, "Trouble quiz")

    payload = _dump(result)
    payload["selectionSummary"] = {
        "weakPromptCount": len(request.candidates),
        "sourceCount": len(request.sources),
    }
    return JSONResponse(content=payload)
