"""Normalisation of loosely-typed LLM output.

Models regularly return ``[{"concept": "Indexes"}, ...]`` where a plain list of
strings was requested. ``coerce_to_string_list`` flattens such values before
schema validation runs, so length constraints are checked on real strings.
"""

from __future__ import annotations

import json
import math
from typing import Any, List, Optional

# Keys searched, in order, when an object arrives where a string was expected
PREFERRED_TEXT_KEYS = ("name", "title", "label", "concept", "text", "description", "summary")


def _pick_text_from_mapping(value: dict) -> Optional[str]:
    for key in PREFERRED_TEXT_KEYS:
        candidate = value.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def _number_to_text(value: float) -> str:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_to_text(value: Any) -> Optional[str]:
    """Coerce a single list element to text, or ``None`` when it carries no value."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_to_text(value)
    if isinstance(value, dict):
        direct = _pick_text_from_mapping(value)
        if direct:
            return direct
        serialized = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
        return None if serialized == "{}" else serialized
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value), separators=(",", ":"), ensure_ascii=False, default=str)
    return None


def coerce_to_string_list(value: Any) -> List[str]:
    """Flatten *value* into a list of non-empty strings.

    Non-list input yields ``[]``. Strings are trimmed (blank ones dropped),
    numbers and booleans are stringified, and objects contribute the first
    non-empty preferred key (``name``, ``title``, ``label``, ``concept``,
    ``text``, ``description``, ``summary``) or, failing that, their compact
    JSON form.
    """
    if not isinstance(value, (list, tuple)):
        return []
    out: List[str] = []
    for item in value:
        text = coerce_to_text(item)
        if text:
            out.append(text)
    return out
