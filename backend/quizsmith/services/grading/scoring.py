"""Exact-match scoring for multiple-choice answers."""

from __future__ import annotations

import re

from quizsmith.services.llm_service.llm_schemas import MultipleChoiceScore

# Leading ASCII base-10 integer; anything after the digits is ignored
_LEADING_INT_RE = re.compile(r"^\s*([+-]?[0-9]+)")


def parse_choice_index(user_answer: str):
    """Return the leading integer of *user_answer*, or ``None`` if there is none."""
    match = _LEADING_INT_RE.match(user_answer or "")
    return int(match.group(1)) if match else None


def score_multiple_choice(correct_index: int, user_answer: str) -> MultipleChoiceScore:
    parsed = parse_choice_index(user_answer)
    if parsed is None:
        return MultipleChoiceScore(correctness="incorrect", score=0)
    is_correct = parsed == correct_index
    return MultipleChoiceScore(correctness="correct" if is_correct else "incorrect", score=1 if is_correct else 0)
