"""Rich console view that follows a session through pub/sub topics."""

import logging
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.text import Text

from ..models.session import ErrorKind, SessionState
from ..models.transcription import Transcript

logger = logging.getLogger(__name__)

STATE_STYLES = {
    SessionState.IDLE: ("⏹️  Idle", "bold yellow"),
    SessionState.STARTING: ("⏳ Connecting...", "bold blue"),
    SessionState.ACTIVE: ("🔴 Listening", "bold red"),
    SessionState.STOPPING: ("⏳ Finishing transcript...", "bold blue"),
    SessionState.FAILED: ("❌ Failed", "bold red"),
}


class ConsoleTranscriptView:
    """Prints state changes, errors and transcript revisions to the terminal."""

    def __init__(self, topic_root: str = "talk2text", console: Optional[Console] = None):
        self.console = console or Console()
        self.topic_root = topic_root
        self.transcript = Transcript()
        self.last_error: Optional[str] = None

        pub.subscribe(self.on_transcript, f"{topic_root}.transcript")
        pub.subscribe(self.on_error, f"{topic_root}.error")
        pub.subscribe(self.on_state, f"{topic_root}.state")
        logger.info(f"ConsoleTranscriptView subscribed to {topic_root}.*")

    def on_transcript(self, transcript: Transcript) -> None:
        if transcript == self.transcript:
            return
        self.transcript = transcript
        if transcript.is_empty:
            return

        line = Text(transcript.final_text, style="bold")
        if transcript.interim_text:
            if transcript.final_text:
                line.append(" ")
            line.append(transcript.interim_text, style="dim italic")
        self.console.print(line)

    def on_error(self, kind: ErrorKind, message: str) -> None:
        self.last_error = message
        self.console.print(f"⚠️  {message}", style="red")

    def on_state(self, state: SessionState, reason: Optional[ErrorKind]) -> None:
        label, style = STATE_STYLES[state]
        self.console.print(label, style=style)

    def show_final(self, transcript: Transcript) -> None:
        self.console.rule("Transcript")
        if transcript.final_text:
            self.console.print(transcript.final_text)
        else:
            self.console.print("(nothing recognized)", style="dim")

    def close(self) -> None:
        pub.unsubscribe(self.on_transcript, f"{self.topic_root}.transcript")
        pub.unsubscribe(self.on_error, f"{self.topic_root}.error")
        pub.unsubscribe(self.on_state, f"{self.topic_root}.state")
