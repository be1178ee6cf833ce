"""Exception types raised by the generation and grading services."""

from __future__ import annotations

from typing import Optional


class QuizsmithError(Exception):
    """Base class for all quizsmith errors."""


class StructuredOutputError(QuizsmithError):
    """Raised when a live LLM response is empty, not JSON, or fails schema validation."""

    def __init__(self, message: str, raw_response: str = ""):
        self.raw_response = raw_response
        super().__init__(message)


class ProviderUnavailableError(QuizsmithError):
    """Raised when the LLM provider call itself fails (auth, network, server)."""


class EmptySourceError(QuizsmithError, ValueError):
    """Raised when no usable source content was supplied."""


class QuizGenerationError(QuizsmithError):
    """Raised when a generation pass fails; no partial quiz is produced."""

    def __init__(self, pass_name: str, cause: Optional[BaseException] = None):
        self.pass_name = pass_name
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"Quiz generation failed during the {pass_name} pass ({detail})")

    @property
    def provider_unavailable(self) -> bool:
        return isinstance(self.cause, ProviderUnavailableError)
