"""Transcription-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TranscriptEvent:
    """A unit of recognition output.

    ``sequence`` identifies the span of speech the event describes. Events
    without a sequence describe the whole transcript so far.
    """
    text: str
    final: bool
    sequence: Optional[int] = None


@dataclass(frozen=True)
class Transcript:
    """Reconciled, UI-visible transcript."""
    final_text: str = ""
    interim_text: str = ""

    @property
    def text(self) -> str:
        """Committed text followed by the in-progress interim text."""
        return " ".join(part for part in (self.final_text, self.interim_text) if part)

    @property
    def is_empty(self) -> bool:
        return not self.final_text and not self.interim_text
