"""Bounded session audio buffer used for the final transcription pass."""

import logging
import threading
from collections import deque

logger = logging.getLogger(__name__)


class SessionAudioBuffer:
    """Keeps the most recent audio of a session, up to a fixed duration."""

    def __init__(self, duration_seconds: float, sample_rate: int = 16000, channels: int = 1):
        """Initialize session audio buffer.

        Args:
            duration_seconds: How many seconds of audio to keep in buffer
            sample_rate: Audio sample rate
            channels: Number of audio channels
        """
        self.duration_seconds = duration_seconds
        self.sample_rate = sample_rate
        self.channels = channels
        self.bytes_per_sample = 2  # 16-bit audio

        self.bytes_per_second = sample_rate * channels * self.bytes_per_sample
        self.max_buffer_bytes = int(self.bytes_per_second * duration_seconds)

        # Written from the capture thread, drained from the event loop
        self.buffer = deque()
        self.lock = threading.Lock()
        self.total_bytes = 0
        self.dropped_bytes = 0

    def add_audio_chunk(self, audio_data: bytes) -> None:
        """Append a chunk, dropping the oldest audio beyond capacity."""
        if not audio_data:
            return

        with self.lock:
            self.buffer.append(audio_data)
            self.total_bytes += len(audio_data)

            while self.total_bytes > self.max_buffer_bytes and self.buffer:
                old_chunk = self.buffer.popleft()
                self.total_bytes -= len(old_chunk)
                self.dropped_bytes += len(old_chunk)

    def drain(self) -> bytes:
        """Return all buffered audio and empty the buffer."""
        with self.lock:
            audio = b"".join(self.buffer)
            if self.dropped_bytes:
                logger.warning(f"Session audio exceeded {self.duration_seconds}s, "
                               f"{self.dropped_bytes} oldest bytes were dropped")
            self.buffer.clear()
            self.total_bytes = 0
            self.dropped_bytes = 0
            return audio

    @property
    def duration_buffered(self) -> float:
        with self.lock:
            return self.total_bytes / self.bytes_per_second

    def clear(self) -> None:
        """Clear the buffer."""
        with self.lock:
            self.buffer.clear()
            self.total_bytes = 0
            self.dropped_bytes = 0
