"""LLM provider factory.

Usage:
    from quizsmith.services.llm_service.llm import get_llm_structured

    llm = get_llm_structured(api_key="sk-...", model="gpt-4o-mini")
    response = await llm.ainvoke(messages, response_format={"type": "json_object"})
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from langchain_openai import ChatOpenAI

from quizsmith.core.config import settings

logger = logging.getLogger(__name__)

# ── LLM instance cache (keyed on frozen kwargs) ───────────────
_llm_cache: Dict[tuple, Any] = {}
_LLM_CACHE_MAX = 16


def _build_openai(
    api_key: str,
    model: str,
    base_url: str,
    temperature: float,
    **extra_kwargs,
) -> ChatOpenAI:
    """Build an OpenAI-compatible chat client.

    SDK-level retries are disabled: the structured client performs at most
    one request-mode downgrade and nothing else. Timeouts are left at the
    transport defaults.
    """
    kw = dict(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        max_retries=0,
    )
    kw.update(extra_kwargs)
    return ChatOpenAI(**kw)


# ── Public API ────────────────────────────────────────────────


def get_llm_structured(
    api_key: str,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    temperature: Optional[float] = None,
    **kwargs,
):
    """Return a chat model for structured output (low temperature).

    Args:
        api_key: Provider credential.
        model: Model name (default: OPENAI_MODEL).
        base_url: Provider endpoint (default: OPENAI_BASE_URL).
        temperature: Generation temperature (default: LLM_TEMPERATURE_STRUCTURED).
        **kwargs: Additional provider-specific parameters.

    Returns:
        LangChain chat model configured for structured generation.
    """
    model = model or settings.OPENAI_MODEL
    base_url = base_url or settings.OPENAI_BASE_URL
    temp = temperature if temperature is not None else settings.LLM_TEMPERATURE_STRUCTURED

    cache_key = ("structured", api_key, model, base_url, temp, tuple(sorted(kwargs.items())))
    cached = _llm_cache.get(cache_key)
    if cached is not None:
        return cached

    logger.debug("Building structured LLM client model=%s base_url=%s", model, base_url)
    instance = _build_openai(api_key=api_key, model=model, base_url=base_url, temperature=temp, **kwargs)
    if len(_llm_cache) >= _LLM_CACHE_MAX:
        _llm_cache.pop(next(iter(_llm_cache)))
    _llm_cache[cache_key] = instance
    return instance
