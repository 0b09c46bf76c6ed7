"""Session-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .audio import CaptureParameters


class SessionState(Enum):
    """Lifecycle state of a transcription session."""
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    FAILED = "failed"

    @property
    def is_live(self) -> bool:
        """True while capture and channel resources may be held."""
        return self in (SessionState.STARTING, SessionState.ACTIVE, SessionState.STOPPING)


class ErrorKind(Enum):
    """User-facing error categories."""
    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    CAPTURE_FAILED = "capture_failed"
    CONNECT_FAILED = "connect_failed"
    UNRECOVERABLE = "unrecoverable"
    REMOTE_CLOSED = "remote_closed"
    MALFORMED = "malformed"
    FINALIZE_FAILED = "finalize_failed"
    NOT_READY = "not_ready"
    MISCONFIGURED = "misconfigured"


class Transport(Enum):
    """Recognition channel selection policy."""
    AUTO = "auto"
    STREAMING = "streaming"
    CONTINUOUS = "continuous"


@dataclass
class SessionConfig:
    """Everything SessionController.start() needs to run one session."""
    deepgram_api_key: Optional[str] = None
    google_credentials_path: Optional[str] = None
    language: str = "en-US"
    transport: Transport = Transport.AUTO
    capture: CaptureParameters = field(default_factory=CaptureParameters)

    # Remote streaming endpoint
    streaming_url: str = "wss://api.deepgram.com/v1/listen"
    prerecorded_url: str = "https://api.deepgram.com/v1/listen"
    auth_scheme: str = "Token"
    model: Optional[str] = None
    connect_timeout: float = 10.0
    close_timeout: float = 2.0

    # Best-effort finalize pass on stop
    finalize_on_stop: bool = True
    finalize_model: str = "nova-2"
    finalize_timeout: float = 15.0
    max_buffer_seconds: float = 300.0

    # Continuous recognizer restart policy
    restart_delay: float = 0.5
