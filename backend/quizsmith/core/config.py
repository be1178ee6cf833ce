"""
Centralized application configuration.

Uses pydantic BaseSettings for automatic env-var loading and validation.
Import the singleton ``settings`` instance throughout the app.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Annotated, List, Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

# Resolve project root once; all relative paths resolve from here
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


class Settings(BaseSettings):
    """Application settings, validated from environment variables."""

    # ── Environment ────────────────────────────────────────
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False
    LOG_DIR: str = "./logs"

    # ── CORS ──────────────────────────────────────────────
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v):
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v

    # ── LLM ───────────────────────────────────────────────
    # Offline mode answers every structured call with its deterministic fallback.
    LLM_OFFLINE: bool = Field(default=False, validation_alias=AliasChoices("LLM_OFFLINE", "MOCK_LLM"))
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    LLM_TEMPERATURE_STRUCTURED: float = 0.1

    # ── Quiz generation ───────────────────────────────────
    SOURCE_CLIP_CHARS: int = 7000
    FOCUS_PROMPT_LIMIT: int = 12
    MIN_QUESTION_COUNT: int = 4
    MAX_QUESTION_COUNT: int = 20

    @field_validator("OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL", mode="after")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("OPENAI_MODEL", mode="after")
    @classmethod
    def _model_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("OPENAI_MODEL must not be empty")
        return v

    @model_validator(mode="after")
    def _resolve_paths_and_cross_validate(self):
        """Resolve relative paths to absolute & cross-validate limits and keys."""
        if self.LOG_DIR and not os.path.isabs(self.LOG_DIR):
            object.__setattr__(self, "LOG_DIR", os.path.join(_PROJECT_ROOT, self.LOG_DIR))

        if self.MIN_QUESTION_COUNT < 1 or self.MIN_QUESTION_COUNT > self.MAX_QUESTION_COUNT:
            raise ValueError(
                f"Question count bounds are invalid: "
                f"MIN_QUESTION_COUNT={self.MIN_QUESTION_COUNT}, MAX_QUESTION_COUNT={self.MAX_QUESTION_COUNT}"
            )

        _log = logging.getLogger("config")
        if not self.LLM_OFFLINE and not self.OPENAI_API_KEY:
            _log.warning("OPENAI_API_KEY is empty; structured calls will use deterministic fallbacks")

        return self

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
