"""Transcription module for talk2text."""

from .base import ContinuousRecognizer, RecognitionChannel
from .continuous import ContinuousRecognitionChannel
from .finalizer import PrerecordedTranscriber
from .google_backend import GoogleContinuousRecognizer
from .reconciler import TranscriptReconciler
from .streaming import StreamingRecognitionChannel

__all__ = [
    "RecognitionChannel",
    "ContinuousRecognizer",
    "ContinuousRecognitionChannel",
    "StreamingRecognitionChannel",
    "GoogleContinuousRecognizer",
    "PrerecordedTranscriber",
    "TranscriptReconciler",
]
