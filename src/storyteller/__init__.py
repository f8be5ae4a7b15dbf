"""
Storyteller – turn a book PDF into a narrated bedtime-story script.

This top-level package exposes the core models shared by the API and the
listening client.
"""

from .models import (
    Script,
    Segment,
    SegmentType,
    StorySection,
)

__all__ = [
    "Script",
    "Segment",
    "SegmentType",
    "StorySection",
]
