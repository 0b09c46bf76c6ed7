"""Session controller that owns the capture-and-transcribe lifecycle."""

import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Deque, Optional

from ..audio.capture import AudioSource
from ..exceptions import (
    CaptureError,
    ChannelError,
    FinalizeError,
    MisconfiguredError,
    NotReadyError,
    Talk2TextError,
)
from ..models.audio import AudioChunk
from ..models.session import ErrorKind, SessionConfig, SessionState
from ..models.transcription import Transcript, TranscriptEvent
from ..transcription.base import RecognitionChannel
from ..transcription.finalizer import PrerecordedTranscriber
from ..transcription.reconciler import TranscriptReconciler
from .channel_factory import create_finalizer, create_recognition_channel
from .observer import SessionObserver

logger = logging.getLogger(__name__)

# Chunks captured while the channel is still connecting (10s at 100ms chunks)
PREROLL_MAX_CHUNKS = 100


def _default_audio_source(config: SessionConfig) -> AudioSource:
    return AudioSource(config.capture)


class SessionController:
    """Orchestrates AudioSource, RecognitionChannel and TranscriptReconciler.

    Only one session runs at a time; ``start()`` while a session is live is
    rejected, not queued. The controller must be driven from a single event
    loop; capture and recognizer callbacks may arrive on other threads.
    """

    def __init__(self,
                 observer: Optional[SessionObserver] = None,
                 audio_source_factory: Optional[Callable[[SessionConfig], AudioSource]] = None,
                 channel_factory: Optional[Callable[[SessionConfig], RecognitionChannel]] = None,
                 finalizer_factory: Optional[Callable[[SessionConfig], Optional[PrerecordedTranscriber]]] = None):
        """Initialize session controller.

        Args:
            observer: Receives transcript, error and state notifications
            audio_source_factory: Builds the AudioSource for a session
            channel_factory: Selects and builds the RecognitionChannel for a session
            finalizer_factory: Builds the transcriber for the final pass on stop
        """
        self.observer = observer or SessionObserver()
        self.audio_source_factory = audio_source_factory or _default_audio_source
        self.channel_factory = channel_factory or create_recognition_channel
        self.finalizer_factory = finalizer_factory or create_finalizer

        self._state = SessionState.IDLE
        self._failure: Optional[Talk2TextError] = None
        # Guards state and reconciler; observer calls happen under it to keep order
        self._lock = threading.RLock()
        self._chunk_lock = threading.Lock()
        self._reconciler = TranscriptReconciler()

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._audio: Optional[AudioSource] = None
        self._channel: Optional[RecognitionChannel] = None
        self._finalizer: Optional[PrerecordedTranscriber] = None
        self._finalize_timeout = 15.0
        self._open_task: Optional[asyncio.Future] = None
        self._release_task: Optional[asyncio.Future] = None
        self._lost_task: Optional[asyncio.Future] = None
        self._pending_loss: Optional[ChannelError] = None
        self._stop_done: Optional[asyncio.Event] = None

        self._forwarding = False
        self._preroll: Deque[AudioChunk] = deque(maxlen=PREROLL_MAX_CHUNKS)
        self.chunks_forwarded = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def failure(self) -> Optional[Talk2TextError]:
        """The error behind the current FAILED state, if any."""
        return self._failure if self._state is SessionState.FAILED else None

    @property
    def transcript(self) -> Transcript:
        with self._lock:
            return self._reconciler.current_transcript()

    @property
    def channel_name(self) -> Optional[str]:
        channel = self._channel
        return channel.name if channel else None

    async def start(self, config: SessionConfig) -> SessionState:
        """Start a session: acquire the microphone, then open the channel.

        Capture and connection failures do not raise; they leave the session
        FAILED and are reported through the observer.

        Returns:
            The resulting session state (ACTIVE or FAILED)

        Raises:
            NotReadyError: If a session is already starting, active or stopping
            MisconfiguredError: If no recognition transport is usable
        """
        if self._state.is_live:
            logger.warning(f"Start rejected, session is {self._state.value}")
            raise NotReadyError()

        release = self._release_task
        if release is not None and not release.done():
            logger.debug("Waiting for the previous session to release its resources")
            await asyncio.shield(release)

        try:
            channel = self.channel_factory(config)
        except MisconfiguredError as e:
            logger.error(f"Cannot start session: {e.message}")
            self.observer.on_error(e.kind, e.message)
            raise

        self._loop = asyncio.get_running_loop()
        self._failure = None
        self._pending_loss = None
        self.chunks_forwarded = 0
        self._finalize_timeout = config.finalize_timeout
        with self._lock:
            self._reconciler.reset()
            self.observer.on_transcript_update(self._reconciler.current_transcript())

        self._channel = channel
        self._finalizer = self.finalizer_factory(config) if channel.supports_finalize else None
        self._set_state(SessionState.STARTING)

        audio = self.audio_source_factory(config)
        self._audio = audio
        try:
            audio.start(self._on_chunk)
        except CaptureError as e:
            self._audio = None
            self._channel = None
            audio.stop()
            self._set_failed(e)
            return self._state

        open_task = asyncio.ensure_future(channel.open(self._on_channel_event, self._on_channel_closed))
        self._open_task = open_task
        await asyncio.wait({open_task})
        self._open_task = None

        if open_task.cancelled():
            # stop() ran while the channel was opening and owns the teardown
            return self._state
        error = open_task.exception()
        if self._state is not SessionState.STARTING:
            return self._state
        if error is not None:
            await self._release_resources()
            if isinstance(error, ChannelError):
                self._set_failed(error)
                return self._state
            self._set_state(SessionState.IDLE)
            raise error
        if self._pending_loss is not None:
            # Channel dropped between finishing open() and this point
            lost, self._pending_loss = self._pending_loss, None
            await self._release_resources()
            self._set_failed(lost)
            return self._state

        self._set_state(SessionState.ACTIVE)
        with self._chunk_lock:
            while self._preroll:
                channel.send(self._preroll.popleft())
                self.chunks_forwarded += 1
            self._forwarding = True
        logger.info(f"Session active on {channel.name} channel")
        return self._state

    async def stop(self) -> SessionState:
        """Stop the session from any state and end in IDLE. Never raises."""
        previous = self._state
        if previous is SessionState.IDLE:
            return previous
        if previous is SessionState.STOPPING and self._stop_done is not None:
            await self._stop_done.wait()
            return self._state

        self._stop_done = asyncio.Event()
        try:
            if previous is SessionState.FAILED:
                await self._release_resources()
            else:
                await self._stop_live_session(previous)
        finally:
            self._set_state(SessionState.IDLE)
            self._stop_done.set()
        return self._state

    def reset_transcript(self) -> None:
        """Clear the transcript (explicit user action)."""
        with self._lock:
            self._reconciler.reset()
            self.observer.on_transcript_update(self._reconciler.current_transcript())

    async def _stop_live_session(self, previous: SessionState) -> None:
        self._set_state(SessionState.STOPPING)

        open_task = self._open_task
        if open_task is not None and not open_task.done():
            open_task.cancel()
            await asyncio.wait({open_task})

        channel = self._channel
        finalizer = self._finalizer
        await self._release_resources()

        if previous is SessionState.ACTIVE and finalizer is not None and channel is not None:
            await self._finalize(channel, finalizer)

    async def _finalize(self, channel: RecognitionChannel, finalizer: PrerecordedTranscriber) -> None:
        """Best-effort single pass over the buffered session audio."""
        audio = channel.take_buffered_audio()
        if not audio:
            return
        try:
            text = await asyncio.wait_for(finalizer.transcribe(audio), timeout=self._finalize_timeout)
        except asyncio.TimeoutError:
            self._report(FinalizeError("Final transcription pass timed out"))
        except FinalizeError as e:
            self._report(e)
        else:
            self._on_channel_event(TranscriptEvent(text=text, final=True))

    async def _release_resources(self) -> None:
        """Stop capture, then close the channel. Concurrent callers share one release."""
        if self._release_task is None or self._release_task.done():
            self._release_task = asyncio.ensure_future(self._do_release())
        await asyncio.shield(self._release_task)

    async def _do_release(self) -> None:
        with self._chunk_lock:
            self._forwarding = False
            self._preroll.clear()

        # Detach both before the first await so a later session's resources are never touched
        audio, self._audio = self._audio, None
        channel, self._channel = self._channel, None

        if audio is not None:
            await asyncio.to_thread(audio.stop)
        if channel is not None:
            await channel.close()

    def _on_chunk(self, chunk: AudioChunk) -> None:
        """AudioSource callback, runs on the capture thread."""
        with self._chunk_lock:
            channel = self._channel
            if self._forwarding and channel is not None:
                channel.send(chunk)
                self.chunks_forwarded += 1
            elif self._state is SessionState.STARTING:
                self._preroll.append(chunk)

    def _on_channel_event(self, event: TranscriptEvent) -> None:
        """Channel callback, may run on a recognizer thread."""
        with self._lock:
            if not self._state.is_live:
                return
            if self._reconciler.apply(event):
                self.observer.on_transcript_update(self._reconciler.current_transcript())

    def _on_channel_closed(self, error: ChannelError) -> None:
        """Channel callback for closures the controller did not request."""
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._schedule_channel_lost, error)
        except RuntimeError:
            logger.debug("Event loop closed, ignoring channel closure")

    def _schedule_channel_lost(self, error: ChannelError) -> None:
        self._lost_task = asyncio.ensure_future(self._handle_channel_lost(error))

    async def _handle_channel_lost(self, error: ChannelError) -> None:
        if self._state is SessionState.STARTING:
            self._pending_loss = error
            return
        if self._state is not SessionState.ACTIVE:
            logger.debug(f"Ignoring channel closure while {self._state.value}")
            return
        logger.error(f"Recognition channel lost: {error.message}")
        await self._release_resources()
        if self._state is not SessionState.ACTIVE or self._failure is not None:
            logger.info(f"Channel loss already handled (session {self._state.value})")
            return
        self._set_failed(error)

    def _report(self, error: Talk2TextError) -> None:
        logger.warning(f"{error.kind.value}: {error.message}")
        self.observer.on_error(error.kind, error.message)

    def _set_failed(self, error: Talk2TextError) -> None:
        self._failure = error
        logger.error(f"Session failed ({error.kind.value}): {error.message}")
        self.observer.on_error(error.kind, error.message)
        self._set_state(SessionState.FAILED, error.kind)

    def _set_state(self, state: SessionState, reason: Optional[ErrorKind] = None) -> None:
        with self._lock:
            if self._state is state:
                return
            self._state = state
            logger.info(f"Session state -> {state.value}")
            self.observer.on_state_change(state, reason)
