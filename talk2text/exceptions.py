"""Error taxonomy for capture, recognition channels and sessions."""

from typing import Optional

from .models.session import ErrorKind


class Talk2TextError(Exception):
    """Base class for all talk2text errors.

    Every error carries an ErrorKind and a message that can be shown to the
    user as-is.
    """

    kind: ErrorKind = ErrorKind.CAPTURE_FAILED
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Capture errors

class CaptureError(Talk2TextError):
    """Microphone could not be acquired or read."""


class PermissionDeniedError(CaptureError):
    kind = ErrorKind.PERMISSION_DENIED
    default_message = "Microphone permission denied. Please allow microphone access."


class NoDeviceError(CaptureError):
    kind = ErrorKind.NO_DEVICE
    default_message = "No microphone found. Please connect a microphone."


class CaptureFailedError(CaptureError):
    kind = ErrorKind.CAPTURE_FAILED
    default_message = "Microphone access failed"

    def __init__(self, message: Optional[str] = None):
        if message:
            message = f"Microphone access failed: {message}"
        super().__init__(message)


# Recognition channel errors

class ChannelError(Talk2TextError):
    """Recognition channel failure."""
    kind = ErrorKind.UNRECOVERABLE


class ConnectFailedError(ChannelError):
    kind = ErrorKind.CONNECT_FAILED
    default_message = "Could not connect to the speech recognition service"


class UnrecoverableChannelError(ChannelError):
    kind = ErrorKind.UNRECOVERABLE
    default_message = "Speech recognition stopped and could not be restarted"


class RemoteClosedError(ChannelError):
    kind = ErrorKind.REMOTE_CLOSED
    default_message = "The speech recognition service closed the connection"

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None):
        self.code = code
        if message is None and code is not None:
            message = f"{self.default_message} (code {code})"
        super().__init__(message)


class MalformedFrameError(ChannelError):
    """Inbound recognition frame could not be decoded. Never fatal."""
    kind = ErrorKind.MALFORMED
    default_message = "Malformed recognition frame"


class FinalizeError(ChannelError):
    kind = ErrorKind.FINALIZE_FAILED
    default_message = "Final transcription pass failed"


class RecognizerAlreadyRunningError(ChannelError):
    """A continuous recognizer was started while already running."""
    default_message = "Recognizer is already running"


# Session errors

class SessionError(Talk2TextError):
    """Session lifecycle misuse or configuration problem."""


class NotReadyError(SessionError):
    kind = ErrorKind.NOT_READY
    default_message = "A session is already in progress"


class MisconfiguredError(SessionError):
    kind = ErrorKind.MISCONFIGURED
    default_message = ("No speech recognition transport available. Set DEEPGRAM_API_KEY "
                       "or configure google_cloud.credentials_path")
