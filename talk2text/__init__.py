"""talk2text - press-and-hold real-time transcription."""

__version__ = "0.1.0"
