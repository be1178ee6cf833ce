"""Health check endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from quizsmith import __version__
from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient
from .utils import get_completion_client

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(client: StructuredCompletionClient = Depends(get_completion_client)):
    """Report service status and whether LLM calls run live or offline."""
    return {"status": "ok", "version": __version__, "llm": client.generation_mode, "model": client.model}
