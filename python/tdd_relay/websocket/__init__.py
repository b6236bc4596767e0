"""Transcript mirror over WebSocket."""
from .mirror import TranscriptMirror, TranscriptEvent

__all__ = ["TranscriptMirror", "TranscriptEvent"]
