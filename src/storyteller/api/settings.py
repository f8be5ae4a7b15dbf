import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables or `.env` file."""

    env: Literal["dev", "docker", "production"] = Field(
        default="dev",
        description="Runtime environment: dev (local), docker (docker-compose), or production",
    )
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="localhost", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    openai_api_key: str | None = None
    # Chat Completions model used to write the script
    openai_model: str = Field(default="gpt-4o", alias="OPENAI_MODEL")
    max_completion_tokens: int = Field(default=8000, gt=0)
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)

    tts_model: str = Field(default="tts-1-hd", alias="TTS_MODEL")
    tts_voice: str = Field(default="onyx", alias="TTS_VOICE")
    tts_format: Literal["mp3", "opus", "aac", "flac", "wav", "pcm"] = Field(
        default="mp3", alias="TTS_FORMAT"
    )

    max_file_size: int = Field(default=25 * 1024 * 1024, alias="MAX_FILE_SIZE", gt=0)
    rate_limit_max: int = Field(default=10, alias="RATE_LIMIT_MAX", gt=0)
    rate_limit_window_ms: int = Field(default=60_000, alias="RATE_LIMIT_WINDOW_MS", gt=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator("log_level", mode="after")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def max_file_size_mb(self) -> float:
        return self.max_file_size / 1024 / 1024

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000


@lru_cache
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached instance of Settings."""
    s = Settings()
    logging.basicConfig(level=s.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info(f"Starting Storyteller in {s.env.upper()} environment")
    logger.info("=" * 60)
    logger.info(f"Address: http://{s.host}:{s.port}")
    logger.info(f"Script model: {s.openai_model}")
    logger.info(f"TTS: {s.tts_model} / {s.tts_voice} ({s.tts_format})")
    logger.info(
        f"Limits: {s.max_file_size_mb:g}MB per file, "
        f"{s.rate_limit_max} requests per {s.rate_limit_window_seconds:g}s"
    )
    logger.info("=" * 60)

    if s.env == "production" and not s.openai_api_key:
        logger.warning("OPENAI_API_KEY not set in production!")

    return s
