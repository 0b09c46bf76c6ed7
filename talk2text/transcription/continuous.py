"""Recognition channel over a continuous recognizer that restarts itself."""

import asyncio
import logging
import threading
from typing import Callable, Optional

from ..exceptions import (
    ChannelError,
    ConnectFailedError,
    RecognizerAlreadyRunningError,
    UnrecoverableChannelError,
)
from ..models.audio import AudioChunk
from ..models.transcription import TranscriptEvent
from .base import ClosedCallback, ContinuousRecognizer, EventCallback, RecognitionChannel

logger = logging.getLogger(__name__)


class ContinuousRecognitionChannel(RecognitionChannel):
    """Keeps a ContinuousRecognizer alive for as long as the channel is open.

    When the recognizer ends on its own it is restarted right away. A failed
    restart is retried once after ``restart_delay``; a second failure closes
    the channel with UnrecoverableChannelError.
    """

    name = "continuous"

    def __init__(self, recognizer: ContinuousRecognizer, restart_delay: float = 0.5):
        self.recognizer = recognizer
        self.restart_delay = restart_delay

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_event: Optional[EventCallback] = None
        self._on_closed: Optional[ClosedCallback] = None
        self._listening = False
        self._retry_handle: Optional[asyncio.TimerHandle] = None

        # Span numbering continues across recognizer restarts
        self._span_lock = threading.Lock()
        self._next_span = 0
        self.restart_count = 0

    @property
    def is_open(self) -> bool:
        return self._listening

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    async def open(self, on_event: EventCallback, on_closed: ClosedCallback) -> None:
        if self._listening:
            logger.warning("Continuous channel already open")
            return

        self._loop = asyncio.get_running_loop()
        self._on_event = on_event
        self._on_closed = on_closed
        self._next_span = 0
        self.restart_count = 0
        self.recognizer.set_callbacks(self._handle_result, self._handle_error, self._handle_end)

        try:
            self.recognizer.start()
        except RecognizerAlreadyRunningError:
            logger.warning("Recognizer was already running, reusing it")
        except ChannelError as e:
            raise ConnectFailedError(f"Could not start speech recognition: {e.message}") from e

        self._listening = True
        logger.info(f"Continuous recognition started with {type(self.recognizer).__name__}")

    def send(self, chunk: AudioChunk) -> None:
        if not self._listening:
            return
        self.recognizer.push_audio(chunk.data)

    async def close(self) -> None:
        self._listening = False
        self._cancel_retry()
        self.recognizer.stop()

    def _handle_result(self, event: TranscriptEvent) -> None:
        """Recognizer callback, may run on the recognizer's thread."""
        if not self._listening:
            return
        with self._span_lock:
            sequence = self._next_span
            if event.final:
                self._next_span += 1
        self._on_event(TranscriptEvent(text=event.text, final=event.final, sequence=sequence))

    def _handle_error(self, message: str, fatal: bool) -> None:
        if fatal:
            logger.error(f"Recognizer failed: {message}")
            self._call_on_loop(self._fail, UnrecoverableChannelError(message))
        else:
            logger.info(f"Recognizer error, waiting for it to end: {message}")

    def _handle_end(self) -> None:
        self._call_on_loop(self._restart_after_end)

    def _call_on_loop(self, callback: Callable, *args) -> None:
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            logger.debug("Event loop closed, ignoring recognizer callback")

    def _restart_after_end(self) -> None:
        if not self._listening:
            return
        logger.info("Recognizer ended while listening, restarting")
        self._attempt_restart(retry_allowed=True)

    def _attempt_restart(self, retry_allowed: bool) -> None:
        self._retry_handle = None
        if not self._listening:
            return
        if self.recognizer.is_running:
            logger.debug("Recognizer already running, skipping restart")
            return

        try:
            self.recognizer.start()
        except RecognizerAlreadyRunningError:
            logger.debug("Recognizer start already in progress, skipping restart")
            return
        except ChannelError as e:
            if retry_allowed:
                logger.warning(f"Recognizer restart failed ({e.message}), retrying in {self.restart_delay}s")
                self._retry_handle = self._loop.call_later(self.restart_delay, self._attempt_restart, False)
            else:
                logger.error(f"Recognizer restart failed again: {e.message}")
                self._fail(UnrecoverableChannelError(
                    f"Speech recognition stopped and could not be restarted: {e.message}"))
            return

        self.restart_count += 1
        logger.info(f"Recognizer restarted ({self.restart_count} restarts this session)")

    def _fail(self, error: ChannelError) -> None:
        if not self._listening:
            return
        self._listening = False
        self._cancel_retry()
        self.recognizer.stop()
        if self._on_closed:
            self._on_closed(error)

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None
