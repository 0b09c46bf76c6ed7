"""Microphone capture that pushes fixed-cadence audio chunks to a callback."""

import errno
import logging
import threading
import time
from datetime import datetime
from threading import Thread, Event
from typing import Callable, Optional

import numpy as np
import pyaudio

from ..exceptions import CaptureError, CaptureFailedError, NoDeviceError, PermissionDeniedError
from ..models.audio import AudioChunk, AudioStats, CaptureParameters
from .filters import NoiseSuppressor

logger = logging.getLogger(__name__)

# PortAudio error codes that mean the device is missing or busy elsewhere
PA_INVALID_DEVICE = -9996
PA_DEVICE_UNAVAILABLE = -9985
_NO_DEVICE_CODES = {PA_INVALID_DEVICE, PA_DEVICE_UNAVAILABLE}


def map_capture_error(error: OSError) -> CaptureError:
    """Translate a PyAudio/PortAudio error into a user-facing CaptureError."""
    message = str(error)
    lowered = message.lower()
    if error.errno in (errno.EACCES, errno.EPERM) or "permission" in lowered or "not allowed" in lowered:
        return PermissionDeniedError()
    if error.errno in _NO_DEVICE_CODES or "no default input device" in lowered:
        return NoDeviceError()
    return CaptureFailedError(message)


class AudioSource:
    """Exclusive microphone capture emitting AudioChunks from a background thread."""

    def __init__(self,
                 parameters: Optional[CaptureParameters] = None,
                 input_device_index: Optional[int] = None,
                 format: int = pyaudio.paInt16):
        """Initialize audio source.

        Args:
            parameters: Fixed capture configuration (mono, 16kHz, 100ms chunks)
            input_device_index: PortAudio device index, None for the default input
            format: PortAudio sample format (16-bit signed int)
        """
        self.parameters = parameters or CaptureParameters()
        self.input_device_index = input_device_index
        self.format = format

        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False
        # Held while a chunk is handed to the callback, so stop() can fence it off
        self._emit_lock = threading.Lock()
        self._on_chunk: Optional[Callable[[AudioChunk], None]] = None

        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None
        self.noise_suppressor: Optional[NoiseSuppressor] = None
        if self.parameters.noise_suppression:
            self.noise_suppressor = NoiseSuppressor(sample_rate=self.parameters.sample_rate)

    def start(self, on_chunk: Callable[[AudioChunk], None]) -> None:
        """Acquire the microphone and start emitting chunks.

        Raises:
            CaptureError: PermissionDeniedError, NoDeviceError or CaptureFailedError
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio capture")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.peak_level = 0.0
        self._on_chunk = on_chunk
        if self.noise_suppressor:
            self.noise_suppressor.reset()

        try:
            self.stream = self.__open_audio_stream()
        except CaptureError as e:
            logger.error(f"Microphone unavailable: {e.message}")
            self._release()
            raise

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.is_recording = True
        self.recording_thread.start()

    def stop(self) -> None:
        """Stop capture and release the device. Safe to call in any state."""
        with self._emit_lock:
            self.stop_event.set()

        thread = self.recording_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        self.recording_thread = None

        self._release()
        if self.is_recording:
            logger.info(f"Audio capture stopped. Total chunks: {self.total_chunks}")
        self.is_recording = False
        self._on_chunk = None

    def __open_audio_stream(self) -> pyaudio.Stream:
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            if self.pyaudio_instance.get_device_count() == 0:
                raise NoDeviceError()
            if self.input_device_index is None:
                device_info = self.pyaudio_instance.get_default_input_device_info()
            else:
                device_info = self.pyaudio_instance.get_device_info_by_index(self.input_device_index)
        except OSError as e:
            raise map_capture_error(e) from e

        if self.parameters.echo_cancellation:
            logger.debug("Echo cancellation requested; relying on the host audio stack")

        try:
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.parameters.channels,
                rate=self.parameters.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.parameters.frames_per_chunk,
                stream_callback=None
            )
        except OSError as e:
            raise map_capture_error(e) from e

        logger.info(f"Audio stream opened on '{device_info.get('name', 'default')}': "
                    f"{self.parameters.sample_rate}Hz, "
                    f"{self.parameters.frames_per_chunk} samples/chunk")
        return stream

    def _record_continuously(self) -> None:
        """Internal method: capture loop in background thread."""
        stream = self.stream
        while not self.stop_event.is_set():
            try:
                audio_data = stream.read(self.parameters.frames_per_chunk, exception_on_overflow=False)
            except OSError as e:
                if not self.stop_event.is_set():
                    logger.error(f"Audio read failed, capture ended: {e}")
                break
            self.__publish_chunk(audio_data)

    def __publish_chunk(self, audio_data: bytes) -> None:
        if self.noise_suppressor:
            audio_data = self.noise_suppressor.process(audio_data)

        with self._emit_lock:
            if self.stop_event.is_set() or self._on_chunk is None:
                return

            self.total_chunks += 1
            if audio_data:
                samples = np.frombuffer(audio_data, dtype=np.int16)
                self.peak_level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0

            chunk = AudioChunk(
                data=audio_data,
                timestamp=time.time(),
                sequence_number=self.total_chunks,
                sample_rate=self.parameters.sample_rate,
                channels=self.parameters.channels,
            )
            try:
                self._on_chunk(chunk)
            except Exception as e:
                logger.error(f"Error in chunk callback: {e}", exc_info=True)

    def _release(self) -> None:
        """Close the stream and PortAudio instance, whatever state they are in."""
        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
        instance, self.pyaudio_instance = self.pyaudio_instance, None
        if instance is not None:
            instance.terminate()

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.parameters.sample_rate,
            chunk_size=self.parameters.frames_per_chunk,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self.stop()
