"""Session event publisher for pub/sub event publishing."""

import logging
from typing import Optional

from pubsub import pub

from ..models.session import ErrorKind, SessionState
from ..models.transcription import Transcript
from .observer import SessionObserver

logger = logging.getLogger(__name__)


class SessionEventPublisher(SessionObserver):
    """Publishes session notifications using pubsub.pub.

    Topics: ``<root>.transcript`` (transcript), ``<root>.error`` (kind,
    message) and ``<root>.state`` (state, reason).
    """

    def __init__(self, topic_root: str = "talk2text"):
        """Initialize session event publisher.

        Args:
            topic_root: Root pub/sub topic name for this session's events
        """
        self.topic_root = topic_root
        self.transcript_topic = f"{topic_root}.transcript"
        self.error_topic = f"{topic_root}.error"
        self.state_topic = f"{topic_root}.state"
        logger.info(f"SessionEventPublisher initialized with topic root: {topic_root}")

    def on_transcript_update(self, transcript: Transcript) -> None:
        pub.sendMessage(self.transcript_topic, transcript=transcript)

    def on_error(self, kind: ErrorKind, message: str) -> None:
        pub.sendMessage(self.error_topic, kind=kind, message=message)
        logger.debug(f"Published error: {kind.value}")

    def on_state_change(self, state: SessionState, reason: Optional[ErrorKind]) -> None:
        pub.sendMessage(self.state_topic, state=state, reason=reason)
        logger.debug(f"Published state change: {state.value}")
