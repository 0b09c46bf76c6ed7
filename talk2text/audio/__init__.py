"""Audio capture and processing module."""

from .capture import AudioSource
from .buffer import SessionAudioBuffer
from .filters import NoiseSuppressor

__all__ = [
    'AudioSource',
    'SessionAudioBuffer',
    'NoiseSuppressor'
]
