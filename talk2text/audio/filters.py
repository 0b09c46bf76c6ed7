"""Lightweight noise suppression for captured PCM chunks."""

import logging

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


class NoiseSuppressor:
    """High-pass filter plus a soft noise gate, applied chunk by chunk.

    Filter state carries over between chunks so chunk boundaries stay
    click-free.
    """

    def __init__(self,
                 sample_rate: int = 16000,
                 cutoff_hz: float = 100.0,
                 gate_threshold: float = 0.01,
                 gate_attenuation: float = 0.2):
        """Initialize the suppressor.

        Args:
            sample_rate: Audio sample rate in Hz
            cutoff_hz: High-pass cutoff that removes DC offset and low rumble
            gate_threshold: RMS level (0.0-1.0) below which a chunk counts as noise
            gate_attenuation: Gain applied to chunks below the gate threshold
        """
        self.sample_rate = sample_rate
        self.gate_threshold = gate_threshold
        self.gate_attenuation = gate_attenuation
        self.sos = signal.butter(4, cutoff_hz, btype="highpass", fs=sample_rate, output="sos")
        self._zi = np.zeros((self.sos.shape[0], 2))

    def process(self, audio_data: bytes) -> bytes:
        """Filter one chunk of 16-bit mono PCM and return the same number of bytes."""
        if not audio_data:
            return audio_data

        samples = np.frombuffer(audio_data, dtype=np.int16).astype(np.float64) / 32768.0
        filtered, self._zi = signal.sosfilt(self.sos, samples, zi=self._zi)

        rms = float(np.sqrt(np.mean(filtered ** 2)))
        if rms < self.gate_threshold:
            filtered = filtered * self.gate_attenuation

        return np.clip(filtered * 32768.0, -32768, 32767).astype(np.int16).tobytes()

    def reset(self) -> None:
        self._zi = np.zeros((self.sos.shape[0], 2))
