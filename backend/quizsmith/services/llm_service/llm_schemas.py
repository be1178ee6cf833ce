"""Pydantic schemas for validating structured LLM outputs.

Attributes are snake_case in Python; the JSON the model is asked to produce
(and what callers receive from ``model_dump(by_alias=True)``) is camelCase.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from quizsmith.services.quiz.coercion import coerce_to_string_list

QuestionType = Literal["multiple_choice", "open_ended"]


class WireModel(BaseModel):
    """Base model with camelCase JSON aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Metadata pass ─────────────────────────────────────────

class QuizMetadata(WireModel):
    title: str
    topic: str
    description: str


# ── Coverage pass ─────────────────────────────────────────

class CoverageBlueprint(WireModel):
    topic: str
    learning_goals: List[str] = Field(min_length=1)
    concepts: List[str] = Field(min_length=3)
    misconceptions: List[str] = Field(min_length=1)

    @field_validator("learning_goals", "concepts", "misconceptions", mode="before")
    @classmethod
    def _coerce_lists(cls, v):
        """Objects and numbers are flattened to strings before length checks."""
        return coerce_to_string_list(v)


# ── Draft / final passes ──────────────────────────────────

class QuestionDraft(WireModel):
    type: QuestionType
    prompt: str = Field(min_length=1)
    choices: Optional[List[str]] = None
    correct_choice_index: Optional[int] = None
    expected_answer: Optional[str] = None
    rubric: Optional[str] = None

    @model_validator(mode="after")
    def _check_variant(self) -> "QuestionDraft":
        """Enforce the multiple-choice / open-ended field split."""
        if self.type == "multiple_choice":
            if not self.choices or len(self.choices) < 2:
                raise ValueError("multiple_choice questions need at least two choices")
            if self.correct_choice_index is None or not 0 <= self.correct_choice_index < len(self.choices):
                raise ValueError(
                    f"correctChoiceIndex {self.correct_choice_index!r} is outside the {len(self.choices)} choices"
                )
            self.expected_answer = None
            self.rubric = None
        else:
            self.choices = None
            self.correct_choice_index = None
        return self


class QuizDraft(WireModel):
    title: str
    questions: List[QuestionDraft] = Field(min_length=1)


class Critique(WireModel):
    issues: List[str]
    strengths: List[str]
    revisions: List[str]


class FinalQuestion(QuestionDraft):
    explanation: Optional[str] = None


class FinalQuiz(WireModel):
    title: str
    topic: str
    summary: str
    questions: List[FinalQuestion] = Field(min_length=1)


# ── Grading ───────────────────────────────────────────────

class OpenEndedGrade(WireModel):
    correctness: Literal["correct", "partially_correct", "incorrect"]
    confidence: float = Field(ge=0, le=1)
    explanation: str
    followup: str


class MultipleChoiceScore(WireModel):
    correctness: Literal["correct", "incorrect"]
    score: Literal[0, 1]


# ── Coach chat ────────────────────────────────────────────

class ChatReply(WireModel):
    reply: str
