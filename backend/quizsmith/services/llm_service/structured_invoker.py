"""Structured LLM invocation with schema-constrained output and deterministic fallback.

This module provides the single entry point every generation and grading pass
goes through:
- Offline mode / missing credential short-circuits to the caller's fallback
- Strict ``json_schema`` response format, downgraded once to ``json_object``
  when the provider does not support schema-constrained output
- JSON extraction from the response text
- Pydantic validation (failure is fatal for the call)
"""

from __future__ import annotations

import copy
import itertools
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from quizsmith.core.config import settings
from quizsmith.core.exceptions import ProviderUnavailableError, StructuredOutputError
from quizsmith.services.llm_service.llm import get_llm_structured

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FallbackProducer = Callable[[], Union[T, Dict[str, Any]]]

# ── Messages ──────────────────────────────────────────────────


@dataclass(frozen=True)
class ChatMessage:
    role: Literal["system", "user"]
    content: str


def system_message(content: str) -> ChatMessage:
    return ChatMessage(role="system", content=content)


def user_message(content: str) -> ChatMessage:
    return ChatMessage(role="user", content=content)


def _to_langchain(messages: Sequence[ChatMessage]) -> List[tuple]:
    return [("system" if m.role == "system" else "human", m.content) for m in messages]


# ── JSON Extraction ───────────────────────────────────────────

_CODE_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?|```\s*", re.DOTALL)
_THINK_TAG_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)


def _clean_json_text(text: str) -> str:
    """Remove markdown fences and reasoning tags."""
    text = _THINK_TAG_RE.sub("", text).strip()
    return _CODE_FENCE_RE.sub("", text).strip()


def _extract_json_object(text: str) -> str:
    """Extract the outermost {...} block from text."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found")
    return text[start:end + 1]


def parse_json_response(text: str) -> Any:
    """Parse LLM output as JSON.

    Attempts, in order: the raw text, the text with fences/reasoning tags
    removed, and the outermost object block. No repair heuristics are
    applied; text that is not JSON after extraction is an error.

    Raises:
        StructuredOutputError: If no JSON value can be parsed.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    cleaned = _clean_json_text(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(_extract_json_object(cleaned))
    except (ValueError, json.JSONDecodeError) as exc:
        raise StructuredOutputError(
            f"LLM response is not valid JSON: {exc}. First 300 chars: {text[:300]}",
            raw_response=text,
        ) from exc


# ── Strict schema conversion ──────────────────────────────────


def to_strict_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Tighten a Pydantic JSON schema for strict structured-output mode.

    Every object becomes closed (``additionalProperties: false``) with all of
    its properties required, and ``default`` values are dropped.
    """

    def _walk(node: Any) -> Any:
        if isinstance(node, dict):
            node.pop("default", None)
            if node.get("type") == "object" and "properties" in node:
                node["additionalProperties"] = False
                node["required"] = list(node["properties"].keys())
            for value in node.values():
                _walk(value)
        elif isinstance(node, list):
            for item in node:
                _walk(item)
        return node

    return _walk(copy.deepcopy(schema))


# Substrings identifying a provider that cannot do schema-constrained output
_SCHEMA_MODE_UNSUPPORTED_MARKERS = ("json_schema", "response_format", "not supported", "unsupported")


def _is_schema_mode_unsupported(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _SCHEMA_MODE_UNSUPPORTED_MARKERS)


def _response_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return (content or "").strip() if isinstance(content, str) else str(content).strip()


# ── Client ────────────────────────────────────────────────────


class StructuredCompletionClient:
    """Chat completion client that always returns a value of the requested schema.

    Configuration is read once, at construction. The client holds no
    per-call state apart from a monotonic counter used to name schemas, so a
    single instance can be shared by concurrent pipeline runs.
    """

    def __init__(
        self,
        offline: Optional[bool] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.offline = settings.LLM_OFFLINE if offline is None else offline
        self.model = model or settings.OPENAI_MODEL
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.OPENAI_BASE_URL
        self._schema_counter = itertools.count()

    @property
    def is_live(self) -> bool:
        return not self.offline and bool(self.api_key)

    @property
    def generation_mode(self) -> str:
        return "live" if self.is_live else "offline"

    def next_schema_name(self) -> str:
        return f"structured_output_{next(self._schema_counter)}"

    async def complete_structured(
        self,
        messages: Sequence[ChatMessage],
        schema: Type[T],
        fallback: FallbackProducer,
    ) -> T:
        """Return a *schema* instance produced by the LLM, or by *fallback*.

        Args:
            messages: Ordered system/user messages.
            schema: Pydantic model the output must validate against.
            fallback: Zero-argument producer of a schema-valid value, used
                when the client is offline or has no credential.

        Raises:
            ProviderUnavailableError: The provider call failed.
            StructuredOutputError: The live response was empty, not JSON, or
                failed schema validation.
        """
        if not self.is_live:
            logger.debug("LLM offline, using fallback for %s", schema.__name__)
            value = fallback()
            return value if isinstance(value, schema) else schema.model_validate(value)

        schema_name = self.next_schema_name()
        strict_format = {
            "type": "json_schema",
            "json_schema": {
                "name": schema_name,
                "strict": True,
                "schema": to_strict_json_schema(schema.model_json_schema(by_alias=True)),
            },
        }

        llm = get_llm_structured(api_key=self.api_key, model=self.model, base_url=self.base_url)
        lc_messages = _to_langchain(messages)

        try:
            response = await llm.ainvoke(lc_messages, response_format=strict_format)
        except Exception as exc:
            if not _is_schema_mode_unsupported(exc):
                logger.error("LLM call failed for %s: %s", schema_name, exc)
                raise ProviderUnavailableError(f"LLM provider call failed: {exc}") from exc
            logger.warning(
                "Provider rejected strict schema output for %s (%s), retrying in json_object mode",
                schema_name, str(exc)[:200],
            )
            try:
                response = await llm.ainvoke(lc_messages, response_format={"type": "json_object"})
            except Exception as retry_exc:
                logger.error("LLM json_object retry failed for %s: %s", schema_name, retry_exc)
                raise ProviderUnavailableError(f"LLM provider call failed: {retry_exc}") from retry_exc

        text = _response_text(response)
        if not text:
            raise StructuredOutputError("LLM returned empty JSON response.")

        data = parse_json_response(text)
        try:
            validated = schema.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "Structured output failed validation against %s: %s", schema.__name__, str(exc)[:300]
            )
            raise StructuredOutputError(
                f"LLM output does not match {schema.__name__}: {exc}", raw_response=text
            ) from exc

        logger.info("Structured output validated against %s (%s)", schema.__name__, schema_name)
        return validated
