"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CaptureParameters:
    """Fixed microphone configuration required by the recognition channels."""
    sample_rate: int = 16000
    channels: int = 1
    echo_cancellation: bool = True
    noise_suppression: bool = True
    chunk_interval_ms: int = 100  # Latency/overhead trade-off, not a correctness knob

    @property
    def frames_per_chunk(self) -> int:
        return int(self.sample_rate * self.chunk_interval_ms / 1000)


@dataclass
class AudioChunk:
    """A timestamped buffer of captured 16-bit PCM audio."""
    data: bytes
    timestamp: float  # Unix timestamp when chunk was captured
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    duration_ms: Optional[int] = None

    def __post_init__(self):
        """Calculate chunk duration if not provided."""
        if self.duration_ms is None and self.data:
            bytes_per_second = self.sample_rate * self.channels * 2
            self.duration_ms = int(len(self.data) / bytes_per_second * 1000)


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    peak_level: float = 0.0
