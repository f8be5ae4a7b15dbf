"""Listening client: speech backends, playback controller and session."""

from .controller import PlaybackController
from .session import ListeningSession
from .speech import LocalSpeechBackend, RemoteSpeechBackend, SpeechBackend
from .state import AudioClip, PlaybackState

__all__ = [
    "AudioClip",
    "ListeningSession",
    "LocalSpeechBackend",
    "PlaybackController",
    "PlaybackState",
    "RemoteSpeechBackend",
    "SpeechBackend",
]
