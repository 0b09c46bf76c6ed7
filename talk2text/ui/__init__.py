"""Terminal user interface for talk2text."""

from .console import ConsoleTranscriptView

__all__ = ["ConsoleTranscriptView"]
