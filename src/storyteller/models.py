from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ResponseFormat = Literal["mp3", "opus", "aac", "flac", "wav", "pcm"]


# =============================================================================
# Storyteller Script
# =============================================================================


class StorySection(BaseModel):
    """One chapter of the narrated story."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    section: str = Field("", description="Chapter heading")
    content: str = Field("", description="Chapter narration text")


class GlossaryItem(BaseModel):
    """A term explained alongside the story (display only)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    term: str = ""
    explanation: str = ""


class Script(BaseModel):
    """Structured storyteller script returned by the generation call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = Field("", description="Story title (not the book title)")
    hook: str | None = Field(None, description="Opening line")
    summary: str | None = Field(None, description="One sentence summary")
    story: tuple[StorySection, ...] = Field(default=(), description="Story chapters in order")
    key_takeaways: tuple[str, ...] = Field(default=(), description="Lessons in order")
    actionable_steps: tuple[str, ...] = Field(default=(), description="Small steps to try")
    bedtime_wisdom: str | None = Field(None, description="Closing words")
    duration_estimate: str | None = Field(None, description="Estimated listening time")
    glossary: tuple[GlossaryItem, ...] = Field(default=(), description="Optional glossary")

    @field_validator("story", "key_takeaways", "actionable_steps", "glossary", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return () if v is None else v


# =============================================================================
# Playable segments
# =============================================================================


class SegmentType(str, Enum):
    """Kinds of playable segments, in document order."""

    HOOK = "hook"
    SUMMARY = "summary"
    STORY = "story"
    TAKEAWAY = "takeaway"
    ACTION = "action"
    WISDOM = "wisdom"


class Segment(BaseModel):
    """A flattened, independently playable unit of a script."""

    model_config = ConfigDict(frozen=True)

    type: SegmentType
    text: str
    index: int = Field(..., ge=0, description="Ordinal position, also the UI lookup key")
    title: str | None = Field(None, description="Display title (story segments only)")


# =============================================================================
# API envelopes
# =============================================================================


class TTSRequest(BaseModel):
    """Request body for ``POST /api/tts``."""

    text: str = Field(..., min_length=1, max_length=4096)
    voice: str | None = Field(None, description="Voice ID, server default if omitted")
    format: ResponseFormat | None = Field(None, description="Audio container, server default if omitted")
    speed: float | None = Field(None, ge=0.25, le=4.0)


class SummarizeMeta(BaseModel):
    model: str
    filename: str
    fileSize: int
    tokensUsed: int | None = None


class SummarizeResponse(BaseModel):
    """Successful response of ``POST /api/summarize-book``."""

    success: Literal[True] = True
    data: dict[str, Any]
    meta: SummarizeMeta
