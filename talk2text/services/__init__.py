"""Services layer for talk2text session orchestration."""

from .channel_factory import create_finalizer, create_recognition_channel
from .observer import SessionObserver
from .publisher import SessionEventPublisher
from .session_controller import SessionController

__all__ = [
    "SessionController",
    "SessionObserver",
    "SessionEventPublisher",
    "create_recognition_channel",
    "create_finalizer",
]
