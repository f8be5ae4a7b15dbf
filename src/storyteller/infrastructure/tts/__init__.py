"""TTS provider implementations (OpenAI)."""

# Re-export for easier access, e.g. `from storyteller.infrastructure.tts import OpenAIProvider`
from .base import MIME_TYPES, TTSProvider, Voice, mime_type_for
from .openai_provider import OpenAIProvider

__all__ = [
    "MIME_TYPES",
    "OpenAIProvider",
    "TTSProvider",
    "Voice",
    "mime_type_for",
]
