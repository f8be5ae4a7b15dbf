"""I/O boundary adapters (e.g. external APIs)."""

from .tts import (
    OpenAIProvider,
    TTSProvider,
    Voice,
)

__all__ = [
    "OpenAIProvider",
    "TTSProvider",
    "Voice",
]
