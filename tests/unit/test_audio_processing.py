"""Unit tests for noise suppression and the session audio buffer."""

import numpy as np
import pytest

from talk2text.audio.buffer import SessionAudioBuffer
from talk2text.audio.filters import NoiseSuppressor


def rms(audio_data):
    samples = np.frombuffer(audio_data, dtype=np.int16).astype(np.float64) / 32768.0
    return float(np.sqrt(np.mean(samples ** 2)))


@pytest.mark.unit
class TestNoiseSuppressor:

    def test_preserves_length(self, audio_test_data):
        suppressor = NoiseSuppressor()
        audio = audio_test_data("sine")

        assert len(suppressor.process(audio)) == len(audio)
        assert suppressor.process(b"") == b""

    def test_removes_dc_offset(self, audio_test_data):
        suppressor = NoiseSuppressor()
        audio = audio_test_data("dc", duration_seconds=0.5, amplitude=0.3)

        filtered = suppressor.process(audio)
        tail = np.frombuffer(filtered, dtype=np.int16)[-1600:].astype(np.float64) / 32768.0

        assert abs(float(np.mean(tail))) < 0.01

    def test_keeps_speech_band(self, audio_test_data):
        suppressor = NoiseSuppressor()
        suppressor.process(audio_test_data("sine"))
        audio = audio_test_data("sine")

        assert rms(suppressor.process(audio)) == pytest.approx(rms(audio), rel=0.1)

    def test_gates_quiet_chunks(self, audio_test_data):
        suppressor = NoiseSuppressor(gate_threshold=0.01, gate_attenuation=0.2)
        quiet = audio_test_data("noise", amplitude=0.005)

        assert rms(suppressor.process(quiet)) < rms(quiet) * 0.3

    def test_reset(self, audio_test_data):
        suppressor = NoiseSuppressor()
        audio = audio_test_data("sine")

        first = suppressor.process(audio)
        suppressor.process(audio)
        suppressor.reset()

        assert suppressor.process(audio) == first


@pytest.mark.unit
class TestSessionAudioBuffer:

    def test_drain_returns_audio_in_order(self):
        buffer = SessionAudioBuffer(duration_seconds=1.0)
        buffer.add_audio_chunk(b"\x01\x00" * 10)
        buffer.add_audio_chunk(b"\x02\x00" * 10)

        assert buffer.drain() == b"\x01\x00" * 10 + b"\x02\x00" * 10
        assert buffer.drain() == b""

    def test_keeps_most_recent_audio(self):
        buffer = SessionAudioBuffer(duration_seconds=0.1)  # 3200 bytes
        for n in range(4):
            buffer.add_audio_chunk(bytes([n]) * 1600)

        assert buffer.duration_buffered == pytest.approx(0.1)
        assert buffer.drain() == bytes([2]) * 1600 + bytes([3]) * 1600

    def test_ignores_empty_chunks(self):
        buffer = SessionAudioBuffer(duration_seconds=1.0)
        buffer.add_audio_chunk(b"")

        assert buffer.duration_buffered == 0.0

    def test_clear(self):
        buffer = SessionAudioBuffer(duration_seconds=1.0)
        buffer.add_audio_chunk(b"\x01\x00" * 10)
        buffer.clear()

        assert buffer.drain() == b""
