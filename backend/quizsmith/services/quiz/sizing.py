"""Question-count heuristic.

The count is chosen from how much material there is (character bands) plus a
small boost for blueprints with many concepts, misconceptions and goals.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from quizsmith.core.config import settings
from quizsmith.services.quiz.sources import Source, total_characters

# (minimum total characters, base question count), checked top-down
SOURCE_VOLUME_BANDS = (
    (25000, 14),
    (12000, 12),
    (6000, 10),
    (2500, 8),
    (0, 6),
)
MAX_COMPLEXITY_BOOST = 4


def clamp_question_count(value: float) -> int:
    """Round *value* (halves up) and clamp it to the allowed question-count range."""
    return max(settings.MIN_QUESTION_COUNT, min(settings.MAX_QUESTION_COUNT, math.floor(value + 0.5)))


def base_count_for_volume(total_chars: int) -> int:
    for threshold, count in SOURCE_VOLUME_BANDS:
        if total_chars >= threshold:
            return count
    return SOURCE_VOLUME_BANDS[-1][1]


def complexity_boost(concepts: Sequence[str], misconceptions: Sequence[str], learning_goals: Sequence[str]) -> int:
    signals = len(concepts) + len(misconceptions) + math.ceil(len(learning_goals) / 2)
    return min(MAX_COMPLEXITY_BOOST, max(0, math.ceil(signals / 5) - 1))


def choose_question_count(sources: Iterable[Source], blueprint) -> int:
    """Pick a question count from source volume and blueprint complexity.

    Args:
        sources: Sources the quiz is generated from (full, unclipped content).
        blueprint: Anything exposing ``concepts``, ``misconceptions`` and
            ``learning_goals`` string lists (normally a ``CoverageBlueprint``).

    Returns:
        Integer in ``[MIN_QUESTION_COUNT, MAX_QUESTION_COUNT]``.
    """
    base = base_count_for_volume(total_characters(sources))
    boost = complexity_boost(blueprint.concepts, blueprint.misconceptions, blueprint.learning_goals)
    return clamp_question_count(base + boost)
