"""Data models for the talk2text application."""

from .audio import AudioChunk, AudioStats, CaptureParameters
from .session import ErrorKind, SessionConfig, SessionState, Transport
from .transcription import Transcript, TranscriptEvent

__all__ = [
    "AudioChunk",
    "AudioStats",
    "CaptureParameters",
    "ErrorKind",
    "SessionConfig",
    "SessionState",
    "Transport",
    "Transcript",
    "TranscriptEvent",
]
