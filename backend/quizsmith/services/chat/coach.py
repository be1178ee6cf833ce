"""Quiz coach chat.

Builds a Socratic tutoring prompt from the quiz, the learner's latest answer
to each question and their message, then asks the LLM for a short reply.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from quizsmith.prompts import get_quiz_chat_prompt
from quizsmith.services.llm_service.llm_schemas import ChatReply, WireModel
from quizsmith.services.llm_service.structured_invoker import (
    StructuredCompletionClient,
    system_message,
    user_message,
)

logger = logging.getLogger(__name__)

COACH_SYSTEM_PROMPT = (
    "You are a quiz coach helping learners build intuition. Prefer hints, scaffolding, and questions over direct answers. "
    "Never immediately reveal a full final answer when a learner struggles. Return JSON only."
)


class QuizChatQuestion(WireModel):
    id: str
    prompt: str
    type: str


class QuizChatAnswer(WireModel):
    question_id: str
    user_answer: str
    correctness: str
    feedback: Optional[str] = None


class QuizChatContext(WireModel):
    title: str
    topic: str = ""
    summary: Optional[str] = None
    questions: List[QuizChatQuestion] = []


class QuizChatRequest(WireModel):
    quiz: QuizChatContext
    answers: List[QuizChatAnswer] = []
    message: str
    question_id: Optional[str] = None
    question_index: Optional[int] = None


def clip(value: str, max_length: int) -> str:
    normalized = value.strip()
    if len(normalized) <= max_length:
        return normalized
    return f"{normalized[:max_length]}..."


def _current_question(request: QuizChatRequest) -> Optional[QuizChatQuestion]:
    questions = request.quiz.questions
    if request.question_id:
        for question in questions:
            if question.id == request.question_id:
                return question
    if request.question_index is not None and 0 <= request.question_index < len(questions):
        return questions[request.question_index]
    return None


def build_question_history(questions: List[QuizChatQuestion], answers: List[QuizChatAnswer]) -> str:
    # Later answers overwrite earlier ones for the same question
    latest_by_question: Dict[str, QuizChatAnswer] = {}
    for answer in answers:
        latest_by_question[answer.question_id] = answer

    lines = []
    for index, question in enumerate(questions, start=1):
        header = f"{index}. [{question.type}] {clip(question.prompt, 260)}"
        latest = latest_by_question.get(question.id)
        if latest is None:
            lines.append(f"{header}\n   - Status: unanswered")
            continue
        lines.append(
            f"{header}\n"
            f"   - Your latest answer: {clip(latest.user_answer, 220)}\n"
            f"   - Result: {latest.correctness}\n"
            f"   - Feedback: {clip(latest.feedback or 'N/A', 220)}"
        )
    return "\n".join(lines)


def build_quiz_chat_prompt(request: QuizChatRequest) -> str:
    current = _current_question(request)
    current_block = (
        f"Current question: {clip(current.prompt, 300)}" if current else "Current question: unavailable"
    )
    return get_quiz_chat_prompt(
        title=request.quiz.title,
        topic=request.quiz.topic or "General",
        summary=clip(request.quiz.summary if request.quiz.summary is not None else "N/A", 300),
        current_question=current_block,
        question_history=build_question_history(request.quiz.questions, request.answers),
        message=request.message,
    )


def _fallback_reply(request: QuizChatRequest) -> ChatReply:
    answered = len({answer.question_id for answer in request.answers})
    return ChatReply(
        reply=(
            f"Let's review this together. So far you've answered {answered} "
            f"of {len(request.quiz.questions)} questions. Start by naming the core concept in the current prompt, "
            f"then explain one reason it matters."
        )
    )


async def generate_quiz_chat_reply(
    request: QuizChatRequest,
    client: Optional[StructuredCompletionClient] = None,
) -> ChatReply:
    if not request.message.strip():
        raise ValueError("message is required.")
    client = client or StructuredCompletionClient()
    reply = await client.complete_structured(
        [system_message(COACH_SYSTEM_PROMPT), user_message(build_quiz_chat_prompt(request))],
        ChatReply,
        lambda: _fallback_reply(request),
    )
    return ChatReply(reply=reply.reply.strip())
