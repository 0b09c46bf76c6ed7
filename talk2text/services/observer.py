"""Observer interface the UI collaborator implements."""

from typing import Optional

from ..models.session import ErrorKind, SessionState
from ..models.transcription import Transcript


class SessionObserver:
    """Receives session notifications. All methods default to no-ops.

    Methods may be called from the event loop or from capture/recognizer
    threads and must not block.
    """

    def on_transcript_update(self, transcript: Transcript) -> None:
        pass

    def on_error(self, kind: ErrorKind, message: str) -> None:
        pass

    def on_state_change(self, state: SessionState, reason: Optional[ErrorKind]) -> None:
        pass
