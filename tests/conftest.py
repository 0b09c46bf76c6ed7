"""Pytest configuration and fixtures for talk2text tests."""

import pytest
import logging
from unittest.mock import Mock, patch
import numpy as np


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "slow: tests that wait on real timers")


@pytest.fixture
def sample_audio_chunk():
    """Generate 100ms of 16-bit 440Hz sine audio."""
    sample_rate = 16000
    samples = 1600
    t = np.linspace(0, samples / sample_rate, samples, False)
    wave_data = np.sin(2 * np.pi * 440 * t) * 0.5
    return (wave_data * 32767).astype(np.int16).tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 3200  # 100ms of silence
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_device_count.return_value = 1
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'index': 0, 'name': 'Test Microphone', 'maxInputChannels': 1
        }

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=0.1, sample_rate=16000, amplitude=0.5):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence', 'dc')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz
            amplitude: Peak amplitude (0.0-1.0)

        Returns:
            bytes: Audio data as bytes
        """
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t) * amplitude
        elif pattern == "noise":
            wave_data = np.random.uniform(-1, 1, samples) * amplitude
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        elif pattern == "dc":
            wave_data = np.full(samples, amplitude)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        return (wave_data * 32767).astype(np.int16).tobytes()

    return generate_audio
