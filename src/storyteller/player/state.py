from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

NO_SEGMENT = -1


@dataclass(frozen=True)
class AudioClip:
    """Synthesized audio stored locally and ready for the audio player."""

    path: Path
    content_type: str = "audio/mpeg"
    size: int = 0


@dataclass
class PlaybackState:
    """Playback flags and the synthesized-audio cache for one listening session."""

    is_playing: bool = False
    current_segment_index: int = NO_SEGMENT
    # Keyed by the first 100 characters of the segment text; unbounded for the session
    audio_cache: dict[str, AudioClip] = field(default_factory=dict)

    @property
    def is_idle(self) -> bool:
        return not self.is_playing and self.current_segment_index == NO_SEGMENT

    @property
    def is_paused(self) -> bool:
        return not self.is_playing and self.current_segment_index != NO_SEGMENT

    def set_idle(self) -> None:
        self.is_playing = False
        self.current_segment_index = NO_SEGMENT
