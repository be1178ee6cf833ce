"""
Shared route utilities: dependencies and error translation used across route modules.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException

from quizsmith.core.exceptions import (
    ProviderUnavailableError,
    QuizGenerationError,
    StructuredOutputError,
)
from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient

logger = logging.getLogger(__name__)


# ── Dependencies ──────────────────────────────────────────────


def get_completion_client() -> StructuredCompletionClient:
    """Structured-completion client configured from settings."""
    return StructuredCompletionClient()


# ── Error translation ─────────────────────────────────────────


def to_http_exception(exc: Exception, action: str) -> HTTPException:
    """Map a service exception onto the HTTP status callers should see.

    - empty sources / invalid request (``ValueError``, incl. EmptySourceError) → 400
    - provider unavailable → 503
    - malformed LLM output or aborted generation → 502
    """
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ProviderUnavailableError) or (
        isinstance(exc, QuizGenerationError) and exc.provider_unavailable
    ):
        logger.error("%s failed, provider unavailable: %s", action, exc)
        return HTTPException(status_code=503, detail=f"{action} failed: LLM provider unavailable")
    if isinstance(exc, (QuizGenerationError, StructuredOutputError)):
        logger.error("%s failed: %s", action, exc)
        return HTTPException(status_code=502, detail=f"{action} failed: {exc}")
    logger.error("%s failed unexpectedly: %s", action, exc)
    return HTTPException(status_code=500, detail=f"Failed to {action.lower()}")
