"""FastAPI dependencies wiring services to settings."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from openai import AsyncOpenAI

from storyteller.api.settings import Settings, get_settings
from storyteller.exceptions import UpstreamError
from storyteller.infrastructure.tts import OpenAIProvider, TTSProvider
from storyteller.services.script_generator import ScriptGenerator


@lru_cache
def _openai_client(api_key: str) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key)


def get_openai_client(settings: Annotated[Settings, Depends(get_settings)]) -> AsyncOpenAI:
    """Return a shared async OpenAI client for the configured key."""
    if not settings.openai_api_key:
        raise UpstreamError("OpenAI API key not configured")
    return _openai_client(settings.openai_api_key)


def get_script_generator(
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[AsyncOpenAI, Depends(get_openai_client)],
) -> ScriptGenerator:
    return ScriptGenerator(
        client,
        model=settings.openai_model,
        max_completion_tokens=settings.max_completion_tokens,
        temperature=settings.temperature,
    )


def get_tts_provider(
    settings: Annotated[Settings, Depends(get_settings)],
    client: Annotated[AsyncOpenAI, Depends(get_openai_client)],
) -> TTSProvider:
    return OpenAIProvider(client=client, model=settings.tts_model)
