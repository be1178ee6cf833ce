"""Prompt template loader.

Each ``get_*_prompt`` function loads a ``.txt`` template from this
package directory and substitutes ``{{PLACEHOLDER}}`` markers.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from typing import Dict, Optional

_DIR = os.path.dirname(__file__)
_PLACEHOLDER_RE = re.compile(r"\{\{[A-Z_]+\}\}")


@lru_cache(maxsize=32)
def _load(filename: str) -> str:
    """Read a template file, caching the result."""
    with open(os.path.join(_DIR, filename), encoding="utf-8") as f:
        return f.read().rstrip("\n")


def _render(filename: str, subs: Dict[str, str]) -> str:
    """Load *filename* and apply all substitutions in a single pass.

    Substituted values are never rescanned, so source text that happens to
    contain ``{{...}}`` is left untouched.
    """
    text = _load(filename)
    return _PLACEHOLDER_RE.sub(lambda m: subs.get(m.group(0), m.group(0)), text)


# ── Generation passes ─────────────────────────────────────


def get_metadata_prompt(source_packet: str, focus_guidance: str = "") -> str:
    return _render("metadata_prompt.txt", {
        "{{SOURCE_PACKET}}": source_packet,
        "{{FOCUS_GUIDANCE}}": focus_guidance,
    })


def get_coverage_prompt(source_packet: str, focus_guidance: str = "") -> str:
    return _render("coverage_prompt.txt", {
        "{{SOURCE_PACKET}}": source_packet,
        "{{FOCUS_GUIDANCE}}": focus_guidance,
    })


def get_draft_prompt(question_count: int, blueprint_json: str, focus_guidance: str = "") -> str:
    return _render("draft_prompt.txt", {
        "{{QUESTION_COUNT}}": str(question_count),
        "{{BLUEPRINT}}": blueprint_json,
        "{{FOCUS_GUIDANCE}}": focus_guidance,
    })


def get_critique_prompt(draft_json: str, blueprint_json: str, focus_guidance: str = "") -> str:
    return _render("critique_prompt.txt", {
        "{{DRAFT}}": draft_json,
        "{{BLUEPRINT}}": blueprint_json,
        "{{FOCUS_GUIDANCE}}": focus_guidance,
    })


def get_final_prompt(revisions_json: str, question_count: int, draft_json: str, focus_guidance: str = "") -> str:
    return _render("final_prompt.txt", {
        "{{REVISIONS}}": revisions_json,
        "{{QUESTION_COUNT}}": str(question_count),
        "{{DRAFT}}": draft_json,
        "{{FOCUS_GUIDANCE}}": focus_guidance,
    })


# ── Grading / coaching ────────────────────────────────────


def get_grade_prompt(
    prompt: str,
    expected_answer: Optional[str],
    rubric: Optional[str],
    learner_answer: str,
) -> str:
    return _render("grade_prompt.txt", {
        "{{PROMPT}}": prompt,
        "{{EXPECTED_ANSWER}}": expected_answer if expected_answer is not None else "N/A",
        "{{RUBRIC}}": rubric if rubric is not None else "N/A",
        "{{LEARNER_ANSWER}}": learner_answer,
    })


def get_quiz_chat_prompt(
    title: str,
    topic: str,
    summary: str,
    current_question: str,
    question_history: str,
    message: str,
) -> str:
    return _render("quiz_chat_prompt.txt", {
        "{{TITLE}}": title,
        "{{TOPIC}}": topic,
        "{{SUMMARY}}": summary,
        "{{CURRENT_QUESTION}}": current_question,
        "{{QUESTION_HISTORY}}": question_history,
        "{{MESSAGE}}": message,
    })
