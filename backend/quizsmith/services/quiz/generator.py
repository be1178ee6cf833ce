"""Iterative quiz generation.

Five structured passes run strictly in sequence, each one's output embedded in
the next one's prompt:

    metadata → coverage → (sizing) → draft → critique → final

Every pass has a deterministic fallback, so with the LLM offline the pipeline
still returns a schema-valid quiz. Any error from a live pass aborts the run.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Type, Union

from pydantic import BaseModel, field_validator

from quizsmith.core.config import settings
from quizsmith.core.exceptions import QuizGenerationError
from quizsmith.prompts import (
    get_coverage_prompt,
    get_critique_prompt,
    get_draft_prompt,
    get_final_prompt,
    get_metadata_prompt,
)
from quizsmith.services.llm_service.llm_schemas import (
    CoverageBlueprint,
    Critique,
    FinalQuestion,
    FinalQuiz,
    QuizDraft,
    QuizMetadata,
    WireModel,
)
from quizsmith.services.llm_service.structured_invoker import (
    StructuredCompletionClient,
    system_message,
    user_message,
)
from quizsmith.services.quiz.coercion import coerce_to_string_list
from quizsmith.services.quiz.sizing import choose_question_count, clamp_question_count
from quizsmith.services.quiz.sources import Source, build_source_packet, require_sources

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "Self-Learning Quiz"
DEFAULT_DESCRIPTION = "A mixed quiz generated from the source content."
FOCUS_HEADER = "Priority focus areas (questions the learner has struggled with):"


# ── Request / result ──────────────────────────────────────────


class QuizGenerationRequest(WireModel):
    sources: List[Source]
    title: Optional[str] = None
    description: Optional[str] = None
    topic: Optional[str] = None
    auto_metadata: bool = False
    question_count: Optional[float] = None
    focus_prompts: List[str] = []

    @field_validator("focus_prompts", mode="before")
    @classmethod
    def _coerce_focus_prompts(cls, v):
        return coerce_to_string_list(v)


class ResolvedMetadata(WireModel):
    title: str
    topic: str
    description: str
    auto_metadata: bool
    question_count: int
    auto_question_count: bool
    focused_trouble_prompts: List[str]


class GenerationMetadata(WireModel):
    resolved_metadata: ResolvedMetadata
    generated_metadata: QuizMetadata
    coverage: CoverageBlueprint
    critique: Critique
    generation_mode: str


class GenerationResult(WireModel):
    quiz: FinalQuiz
    metadata: GenerationMetadata


# ── Fallback quiz ─────────────────────────────────────────────


def build_fallback_quiz(topic: str, title: str, count: int) -> FinalQuiz:
    """Deterministic quiz of ``max(4, count)`` questions, alternating MCQ / open-ended."""
    questions = []
    for idx in range(max(settings.MIN_QUESTION_COUNT, count)):
        if idx % 2 == 0:
            questions.append(FinalQuestion(
                type="multiple_choice",
                prompt=f"Which statement best reflects concept #{idx + 1} in {topic}?",
                choices=["Option A", "Option B", "Option C", "Option D"],
                correct_choice_index=0,
                explanation="Option A is currently the baseline answer in fallback mode.",
            ))
        else:
            questions.append(FinalQuestion(
                type="open_ended",
                prompt=f"Explain concept #{idx + 1} from {topic} in your own words.",
                expected_answer="A complete answer should explain the concept and give one concrete example.",
                rubric="Award full credit for conceptual correctness + example.",
                explanation="Focus on conceptual clarity and example quality.",
            ))
    return FinalQuiz(
        title=title,
        topic=topic,
        summary="Fallback quiz generated when the LLM is not available.",
        questions=questions,
    )


# ── Helpers ───────────────────────────────────────────────────


def _to_json(value: Any) -> str:
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, exclude_none=True)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def render_focus_guidance(focus_prompts: Sequence[str]) -> str:
    if not focus_prompts:
        return ""
    bullets = "\n".join(f"- {prompt}" for prompt in focus_prompts)
    return f"\n{FOCUS_HEADER}\n{bullets}"


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _explicit_question_count(value: Optional[float]) -> Optional[int]:
    if value is None or not math.isfinite(value):
        return None
    return clamp_question_count(value)


# ── Pipeline state & stages ───────────────────────────────────


@dataclass
class _GenerationState:
    request: QuizGenerationRequest
    sources: List[Source]
    source_packet: str
    focus_prompts: List[str]
    focus_guidance: str
    requested_count: Optional[int]
    started_at: float = field(default_factory=time.monotonic)

    generated_metadata: Optional[QuizMetadata] = None
    title: str = ""
    topic: str = ""
    description: str = ""
    coverage: Optional[CoverageBlueprint] = None
    question_count: int = 0
    draft: Optional[QuizDraft] = None
    critique: Optional[Critique] = None
    final: Optional[FinalQuiz] = None

    def log_step(self, message: str) -> None:
        elapsed_ms = int((time.monotonic() - self.started_at) * 1000)
        logger.info("[QuizGen][%dms] %s", elapsed_ms, message)


@dataclass(frozen=True)
class PassStage:
    """One LLM-backed pass: prompt builder, output schema and fallback."""

    name: str
    target: str
    schema: Type[BaseModel]
    system_prompt: str
    build_prompt: Callable[[_GenerationState], str]
    fallback: Callable[[_GenerationState], Union[BaseModel, dict]]
    after: Optional[Callable[[_GenerationState], None]] = None


def _resolve_metadata(state: _GenerationState) -> None:
    """Explicit value, then generated value (auto-metadata only), then default."""
    req = state.request
    generated = state.generated_metadata
    auto = req.auto_metadata

    state.topic = _clean(req.topic) or (_clean(generated.topic) if auto else "") or DEFAULT_TOPIC
    state.title = _clean(req.title) or (_clean(generated.title) if auto else "") or f"{state.topic} Quiz"
    state.description = (
        _clean(req.description) or (_clean(generated.description) if auto else "") or DEFAULT_DESCRIPTION
    )


def _decide_question_count(state: _GenerationState) -> None:
    if state.requested_count is not None:
        state.question_count = state.requested_count
        state.log_step(f"Using user-selected question count: {state.question_count}.")
    else:
        state.question_count = choose_question_count(state.sources, state.coverage)
        state.log_step(f"Auto-selected question count: {state.question_count}.")


def _draft_fallback(state: _GenerationState) -> QuizDraft:
    quiz = build_fallback_quiz(state.coverage.topic or state.topic, state.title, state.question_count)
    return QuizDraft.model_validate(quiz.model_dump())


def _final_fallback(state: _GenerationState) -> FinalQuiz:
    return build_fallback_quiz(
        state.coverage.topic or state.topic,
        state.draft.title or state.title,
        state.question_count,
    )


PASS_STAGES: List[PassStage] = [
    PassStage(
        name="metadata",
        target="generated_metadata",
        schema=QuizMetadata,
        system_prompt="Generate concise quiz metadata from source material. Return JSON only.",
        build_prompt=lambda s: get_metadata_prompt(s.source_packet, s.focus_guidance),
        fallback=lambda s: QuizMetadata(
            title="Self-Learning Quiz",
            topic="Self-Learning",
            description="A mixed quiz generated from your uploaded sources.",
        ),
        after=_resolve_metadata,
    ),
    PassStage(
        name="coverage",
        target="coverage",
        schema=CoverageBlueprint,
        system_prompt="You design pedagogically sound quizzes. Return JSON only.",
        build_prompt=lambda s: get_coverage_prompt(s.source_packet, s.focus_guidance),
        fallback=lambda s: CoverageBlueprint(
            topic=s.topic,
            learning_goals=["Understand the core topic"],
            concepts=["Core idea", "Key workflow", "Common pitfall"],
            misconceptions=["Confusing implementation details with concepts"],
        ),
        after=_decide_question_count,
    ),
    PassStage(
        name="draft",
        target="draft",
        schema=QuizDraft,
        system_prompt="Draft mixed question quizzes and return JSON only.",
        build_prompt=lambda s: get_draft_prompt(s.question_count, _to_json(s.coverage), s.focus_guidance),
        fallback=_draft_fallback,
    ),
    PassStage(
        name="critique",
        target="critique",
        schema=Critique,
        system_prompt="Critique draft quiz quality. Return JSON only.",
        build_prompt=lambda s: get_critique_prompt(_to_json(s.draft), _to_json(s.coverage), s.focus_guidance),
        fallback=lambda s: Critique(
            issues=[],
            strengths=["Covers major concepts"],
            revisions=["Increase specificity in open-ended prompts"],
        ),
    ),
    PassStage(
        name="final",
        target="final",
        schema=FinalQuiz,
        system_prompt="Revise and finalize the quiz. Return JSON only.",
        build_prompt=lambda s: get_final_prompt(
            _to_json(s.critique.revisions), s.question_count, _to_json(s.draft), s.focus_guidance
        ),
        fallback=_final_fallback,
    ),
]


async def _run_stages(
    stages: Sequence[PassStage],
    state: _GenerationState,
    client: StructuredCompletionClient,
) -> None:
    for stage in stages:
        state.log_step(f"Starting {stage.name} pass.")
        messages = [
            system_message(stage.system_prompt),
            user_message(stage.build_prompt(state)),
        ]
        try:
            value = await client.complete_structured(
                messages, stage.schema, lambda stage=stage: stage.fallback(state)
            )
        except Exception as exc:
            state.log_step(f"{stage.name} pass failed: {type(exc).__name__}: {exc}")
            raise QuizGenerationError(stage.name, exc) from exc
        setattr(state, stage.target, value)
        if stage.after is not None:
            stage.after(state)
        state.log_step(f"{stage.name.capitalize()} pass complete.")


# ── Public API ────────────────────────────────────────────────


async def generate_quiz_iteratively(
    request: Union[QuizGenerationRequest, dict],
    client: Optional[StructuredCompletionClient] = None,
    stages: Optional[Sequence[PassStage]] = None,
) -> GenerationResult:
    """Generate a quiz from sources through the five structured passes.

    Args:
        request: Sources plus optional title/description/topic, auto-metadata
            flag, explicit question count and focus prompts.
        client: Structured-completion client (default: configured from settings).
        stages: Override the pass list (default: ``PASS_STAGES``).

    Returns:
        GenerationResult with the final quiz and diagnostic metadata.

    Raises:
        EmptySourceError: No sources or blank source content.
        QuizGenerationError: A pass failed; nothing is returned.
    """
    if isinstance(request, dict):
        request = QuizGenerationRequest.model_validate(request)
    sources = require_sources(request.sources)
    client = client or StructuredCompletionClient()

    focus_prompts = request.focus_prompts[: settings.FOCUS_PROMPT_LIMIT]
    state = _GenerationState(
        request=request,
        sources=sources,
        source_packet=build_source_packet(sources),
        focus_prompts=focus_prompts,
        focus_guidance=render_focus_guidance(focus_prompts),
        requested_count=_explicit_question_count(request.question_count),
    )

    await _run_stages(stages if stages is not None else PASS_STAGES, state, client)

    quiz = state.final.model_copy(update={
        "title": state.title,
        "topic": state.topic,
        "summary": state.description,
    })

    return GenerationResult(
        quiz=quiz,
        metadata=GenerationMetadata(
            resolved_metadata=ResolvedMetadata(
                title=state.title,
                topic=state.topic,
                description=state.description,
                auto_metadata=request.auto_metadata,
                question_count=state.question_count,
                auto_question_count=state.requested_count is None,
                focused_trouble_prompts=focus_prompts,
            ),
            generated_metadata=state.generated_metadata,
            coverage=state.coverage,
            critique=state.critique,
            generation_mode=client.generation_mode,
        ),
    )
