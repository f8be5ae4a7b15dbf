from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class PlayerSettings(BaseSettings):
    """Listening client settings, read from ``STORYTELLER_*`` variables or `.env`."""

    api_base: str = Field(default="http://localhost:3000", description="Storyteller API base URL")
    speech_backend: Literal["remote", "local"] = Field(
        default="remote",
        description="remote: server-side OpenAI TTS, local: on-device speech engine",
    )
    language: str = Field(default="zh-CN", description="Language tag for on-device speech")
    pacing_delay: float = Field(default=1.0, ge=0.0, description="Pause between segments in seconds")
    request_timeout: float = Field(default=300.0, gt=0, description="HTTP timeout in seconds")
    ffplay_path: str = Field(default="ffplay", description="Audio player executable")
    max_file_size: int = Field(default=25 * 1024 * 1024, gt=0)

    model_config = {
        "env_prefix": "STORYTELLER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }
