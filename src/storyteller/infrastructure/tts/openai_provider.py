from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from storyteller.exceptions import UpstreamError, UpstreamRateLimitError
from storyteller.infrastructure.tts.base import TTSProvider, Voice
from storyteller.models import ResponseFormat

logger = logging.getLogger(__name__)


class OpenAIProvider(TTSProvider):
    """TTS provider for the OpenAI Audio Speech API.

    Uses tts-1-hd by default - OpenAI's high-definition TTS model.
    """

    name: str = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = "tts-1-hd",
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("OpenAI API key not found. Set OPENAI_API_KEY or pass api_key.")
            client = AsyncOpenAI(api_key=api_key)
        self.client = client
        self.model = model

    def list_voices(self) -> list[Voice]:
        """OpenAI has fixed voices, map them to our internal `Voice` model."""

        return [
            Voice(
                id="alloy",
                name="Alloy",
                gender="neutral",
                description="Versatile, balanced neutral voice.",
            ),
            Voice(id="echo", name="Echo", gender="male", description="Warm, engaging male voice."),
            Voice(
                id="fable",
                name="Fable",
                gender="male",
                description="Storyteller, classic male narrator voice.",
            ),
            Voice(
                id="onyx",
                name="Onyx",
                gender="male",
                description="Deep, resonant male voice.",
                tags=["storyteller"],
            ),
            Voice(
                id="nova",
                name="Nova",
                gender="female",
                description="Bright, expressive female voice.",
            ),
            Voice(
                id="shimmer",
                name="Shimmer",
                gender="female",
                description="Clear, gentle female voice.",
            ),
        ]

    async def synth(
        self,
        *,
        text: str,
        voice: str,  # Matched to one of the IDs above
        format: ResponseFormat = "mp3",  # mp3, opus, aac, flac, wav, pcm
        speed: float = 1.0,  # 0.25 to 4.0
    ) -> bytes:
        """Synthesize audio using OpenAI TTS API."""
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice,  # type: ignore[arg-type]
                input=text,
                response_format=format,
                speed=speed,
            )
        except openai.RateLimitError as e:
            logger.warning(f"OpenAI TTS rate limited: {e}")
            raise UpstreamRateLimitError("OpenAI API rate limit reached, please retry later") from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI TTS request failed: {e}")
            raise UpstreamError(str(e) or "TTS conversion failed") from e

        return response.content
