"""Abstract base classes for recognition channels and recognizer primitives."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..exceptions import ChannelError
from ..models.audio import AudioChunk
from ..models.transcription import TranscriptEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[TranscriptEvent], None]
ClosedCallback = Callable[[ChannelError], None]


class RecognitionChannel(ABC):
    """Push audio in, receive transcript events out.

    ``on_closed`` is only called for closures the caller did not request
    through ``close()``.
    """

    name = "recognition"

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    async def open(self, on_event: EventCallback, on_closed: ClosedCallback) -> None:
        """Open the channel; audio may be sent once this returns.

        Raises:
            ChannelError: If the channel could not be opened
        """
        pass

    @abstractmethod
    def send(self, chunk: AudioChunk) -> None:
        """Forward one chunk. Thread-safe, never raises, drops when not open."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Idempotent."""
        pass

    @property
    def supports_finalize(self) -> bool:
        """Whether buffered audio can be re-transcribed when the session stops."""
        return False

    def take_buffered_audio(self) -> Optional[bytes]:
        """Hand over the audio sent during the session, if the channel kept it."""
        return None


class ContinuousRecognizer(ABC):
    """Continuous recognition primitive with its own turn-taking.

    The recognizer may end on its own (silence, stream limits, device
    hiccups). Callbacks can fire from any thread.
    """

    def __init__(self):
        self.on_result: Optional[EventCallback] = None
        self.on_error: Optional[Callable[[str, bool], None]] = None
        self.on_end: Optional[Callable[[], None]] = None

    def set_callbacks(self,
                      on_result: EventCallback,
                      on_error: Callable[[str, bool], None],
                      on_end: Callable[[], None]) -> None:
        """Register result, error(message, fatal) and end callbacks."""
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass

    @abstractmethod
    def start(self) -> None:
        """Start recognizing.

        Raises:
            RecognizerAlreadyRunningError: If a start is already pending or active
            ChannelError: If the recognizer could not start
        """
        pass

    @abstractmethod
    def push_audio(self, audio_data: bytes) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass
