"""
Shared pytest fixtures and configuration for the entire test suite.
Applies to all subdirectories: unit/, api/, e2e/
"""

import sys
import os
import tempfile
from typing import List
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

# ── Ensure backend is importable from every pytest session ──────────────────
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# Minimal env so that Pydantic Settings validates offline on import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LLM_OFFLINE", "1")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="quizsmith_logs_"))


SAMPLE_MARKDOWN = (
    "# Database Indexes\n\n"
    "An index is a separate data structure that lets the database find rows "
    "without scanning the whole table. B-tree indexes keep keys sorted, which "
    "makes range queries cheap. Every index slows down writes because it must "
    "be updated on insert, update and delete.\n\n"
    "## Common pitfalls\n\n"
    "- Indexing low-cardinality columns rarely helps.\n"
    "- Composite index column order matters for prefix matching.\n"
)


# ── Fake LLM plumbing ─────────────────────────────────────────────────────────


class FakeMessage:
    """Stand-in for a LangChain AIMessage."""

    def __init__(self, content):
        self.content = content


def fake_llm(*responses):
    """Return a mock chat model whose ``ainvoke`` yields *responses* in order.

    Exceptions in *responses* are raised instead of returned.
    """
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=[
        r if isinstance(r, BaseException) else FakeMessage(r) for r in responses
    ])
    return llm


class RecordingClient:
    """Offline completion client that records every message list it is sent."""

    generation_mode = "offline"

    def __init__(self):
        self.calls: List[tuple] = []

    async def complete_structured(self, messages, schema, fallback):
        self.calls.append((schema.__name__, list(messages)))
        value = fallback()
        return value if isinstance(value, schema) else schema.model_validate(value)

    def user_prompts(self) -> List[str]:
        return [next(m.content for m in messages if m.role == "user") for _, messages in self.calls]


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def markdown_source():
    from quizsmith.services.quiz.sources import normalize_markdown_source
    return normalize_markdown_source("indexes.md", SAMPLE_MARKDOWN)


@pytest.fixture
def offline_client():
    from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient
    return StructuredCompletionClient(offline=True)


@pytest.fixture
def live_client():
    """Completion client that believes it is live; patch the LLM factory to drive it."""
    from quizsmith.services.llm_service.structured_invoker import StructuredCompletionClient
    return StructuredCompletionClient(offline=False, api_key="sk-test", model="gpt-test")


@pytest.fixture
def patch_llm():
    """Patch the LLM factory used by the structured client.

    Usage: ``llm = patch_llm(json_text, ...)`` returns the fake model.
    """
    patchers = []

    def _install(*responses):
        llm = fake_llm(*responses)
        p = patch(
            "quizsmith.services.llm_service.structured_invoker.get_llm_structured",
            return_value=llm,
        )
        p.start()
        patchers.append(p)
        return llm

    yield _install
    for p in patchers:
        p.stop()


@pytest.fixture
def recording_client():
    return RecordingClient()


# ── FastAPI TestClient fixture ────────────────────────────────────────────────

@pytest.fixture(scope="session")
def app_client():
    """Return a FastAPI TestClient for the full application."""
    from fastapi.testclient import TestClient
    from quizsmith.main import app
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
