"""Selects and builds the recognition channel for a session."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import MisconfiguredError
from ..models.session import SessionConfig, Transport
from ..transcription.base import RecognitionChannel
from ..transcription.continuous import ContinuousRecognitionChannel
from ..transcription.finalizer import PrerecordedTranscriber
from ..transcription.google_backend import GoogleContinuousRecognizer
from ..transcription.streaming import MIN_API_KEY_LENGTH, StreamingRecognitionChannel

logger = logging.getLogger(__name__)


def has_remote_credential(config: SessionConfig) -> bool:
    key = config.deepgram_api_key
    return bool(key) and len(key.strip()) >= MIN_API_KEY_LENGTH


def has_google_credentials(config: SessionConfig) -> bool:
    path = config.google_credentials_path
    return bool(path) and Path(path).is_file()


def create_recognition_channel(config: SessionConfig) -> RecognitionChannel:
    """Pick a channel variant once, at session start.

    Raises:
        MisconfiguredError: If the requested or any usable transport is unavailable
    """
    transport = config.transport
    use_streaming = transport is Transport.STREAMING or (
        transport is Transport.AUTO and has_remote_credential(config))

    if use_streaming:
        if not has_remote_credential(config):
            raise MisconfiguredError("Deepgram API key not configured. Set DEEPGRAM_API_KEY "
                                     "or deepgram.api_key in the configuration file")
        logger.info("Using streaming recognition channel")
        return StreamingRecognitionChannel(
            api_key=config.deepgram_api_key.strip(),
            url=config.streaming_url,
            sample_rate=config.capture.sample_rate,
            channels=config.capture.channels,
            language=config.language,
            model=config.model,
            auth_scheme=config.auth_scheme,
            connect_timeout=config.connect_timeout,
            close_timeout=config.close_timeout,
            max_buffer_seconds=config.max_buffer_seconds,
        )

    if transport is Transport.CONTINUOUS or has_google_credentials(config):
        if not has_google_credentials(config):
            raise MisconfiguredError(
                f"Google credentials file not found: {config.google_credentials_path or '(not configured)'}")
        logger.info("Using continuous recognition channel (Google Speech-to-Text)")
        recognizer = GoogleContinuousRecognizer(
            credentials_path=config.google_credentials_path,
            sample_rate=config.capture.sample_rate,
            language=config.language,
        )
        return ContinuousRecognitionChannel(recognizer, restart_delay=config.restart_delay)

    raise MisconfiguredError()


def create_finalizer(config: SessionConfig) -> Optional[PrerecordedTranscriber]:
    """Build the prerecorded transcriber used on stop, if enabled and possible."""
    if not config.finalize_on_stop or not has_remote_credential(config):
        return None
    return PrerecordedTranscriber(
        api_key=config.deepgram_api_key.strip(),
        url=config.prerecorded_url,
        model=config.finalize_model,
        sample_rate=config.capture.sample_rate,
        channels=config.capture.channels,
        language=config.language,
        auth_scheme=config.auth_scheme,
        timeout=config.finalize_timeout,
    )
