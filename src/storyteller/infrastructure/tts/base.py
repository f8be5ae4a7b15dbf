from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from storyteller.models import ResponseFormat

MIME_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "opus": "audio/opus",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "pcm": "audio/pcm",
}


def mime_type_for(format: str) -> str:
    """Return the Content-Type for an audio *format*, defaulting to MP3."""
    return MIME_TYPES.get(format, "audio/mpeg")


@dataclass
class Voice:
    """Represents a voice option for a TTS provider."""

    id: str
    name: str
    gender: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)


class TTSProvider(ABC):
    """Abstract base class for TTS providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the (unique) short-name for this provider (e.g. 'openai')."""

    @abstractmethod
    def list_voices(self) -> list[Voice]:
        """Return all available voices for this provider."""

    @abstractmethod
    async def synth(
        self,
        *,  # force keyword-only args
        text: str,
        voice: str,  # voice ID
        format: ResponseFormat = "mp3",
        speed: float = 1.0,
    ) -> bytes:
        """Synthesise *text* with *voice* and return the encoded audio bytes."""
