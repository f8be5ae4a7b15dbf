"""Text-to-speech proxy endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response

from storyteller.api.dependencies import get_tts_provider
from storyteller.api.settings import Settings, get_settings
from storyteller.infrastructure.tts import TTSProvider, mime_type_for
from storyteller.models import TTSRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["TTS"])


@router.post("/tts", response_class=Response)
async def text_to_speech(
    request: TTSRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    provider: Annotated[TTSProvider, Depends(get_tts_provider)],
) -> Response:
    """Synthesize *request.text* and return the raw audio bytes."""
    output_format = request.format or settings.tts_format
    logger.info(f"[TTS] Converting {len(request.text)} characters ({output_format})")

    audio = await provider.synth(
        text=request.text,
        voice=request.voice or settings.tts_voice,
        format=output_format,
        speed=request.speed or 1.0,
    )

    return Response(
        content=audio,
        media_type=mime_type_for(output_format),
        headers={"Cache-Control": "no-cache"},
    )
