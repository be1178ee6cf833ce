"""Source documents and source-packet construction.

Sources arrive already materialised (uploaded markdown text, a fetched video
transcript). This module normalises them and renders the clipped text block
that every generation pass receives as context.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Iterable, List, Literal, Optional

from pydantic import ConfigDict, Field, model_validator

from quizsmith.core.config import settings
from quizsmith.core.exceptions import EmptySourceError
from quizsmith.services.llm_service.llm_schemas import WireModel

logger = logging.getLogger(__name__)

SourceOrigin = Literal["markdown", "youtube_transcript"]

TRUNCATION_MARKER = "\n...[truncated]"
SOURCE_SEPARATOR = "\n\n---\n\n"

_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/)([A-Za-z0-9_\-]{11})"),
    re.compile(r"youtube\.com/v/([A-Za-z0-9_\-]{11})"),
    re.compile(r"youtube\.com/watch\?.*v=([A-Za-z0-9_\-]{11})"),
]
_BARE_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{11}$")


def hash_content(content: str) -> str:
    """SHA-256 hex digest of *content*."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class Source(WireModel):
    """One immutable piece of learning material."""

    model_config = ConfigDict(frozen=True)

    origin: SourceOrigin
    title: str
    external_reference: Optional[str] = None
    content: str
    content_hash: str = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def _fill_hash(cls, data):
        if isinstance(data, dict):
            content = data.get("content")
            has_hash = data.get("content_hash") or data.get("contentHash")
            if isinstance(content, str) and not has_hash:
                data = {**data, "content_hash": hash_content(content)}
        return data


# ── Normalisation ─────────────────────────────────────────────


def normalize_markdown_source(name: str, content: str) -> Source:
    cleaned = (content or "").strip()
    if not cleaned:
        raise EmptySourceError(f"Markdown file {name} is empty.")
    return Source(origin="markdown", title=name, content=cleaned)


def extract_video_id(url_or_id: str) -> Optional[str]:
    """Extract a YouTube video ID from a watch/short/embed URL or a bare ID."""
    value = (url_or_id or "").strip()
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return value if _BARE_VIDEO_ID_RE.match(value) else None


def normalize_youtube_source(video_id: str, transcript_text: str) -> Source:
    cleaned = (transcript_text or "").strip()
    if not cleaned:
        raise EmptySourceError("Transcript is empty.")
    return Source(
        origin="youtube_transcript",
        title=f"YouTube Transcript ({video_id})",
        external_reference=f"https://www.youtube.com/watch?v={video_id}",
        content=cleaned,
    )


def require_sources(sources: Optional[Iterable[Source]]) -> List[Source]:
    """Reject missing sources or sources without content before any LLM call."""
    materialised = list(sources or [])
    if not materialised:
        raise EmptySourceError("At least one source is required to generate a quiz.")
    blank = [s.title for s in materialised if not s.content.strip()]
    if blank:
        raise EmptySourceError(f"Source content is empty: {', '.join(blank)}")
    return materialised


# ── Source packet ─────────────────────────────────────────────


def clip_content(content: str, limit: Optional[int] = None) -> str:
    limit = settings.SOURCE_CLIP_CHARS if limit is None else limit
    if len(content) > limit:
        return content[:limit] + TRUNCATION_MARKER
    return content


def build_source_packet(sources: Iterable[Source], limit: Optional[int] = None) -> str:
    """Render sources as numbered blocks with per-source clipped content."""
    blocks = []
    for index, source in enumerate(sources, start=1):
        blocks.append(
            f"Source {index}\n"
            f"Origin: {source.origin}\n"
            f"Title: {source.title}\n"
            f"Content:\n{clip_content(source.content, limit)}"
        )
    return SOURCE_SEPARATOR.join(blocks)


def total_characters(sources: Iterable[Source]) -> int:
    return sum(len(source.content) for source in sources)
