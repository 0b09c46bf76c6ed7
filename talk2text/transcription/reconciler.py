"""Reconciles a stream of interim/final transcript events into one transcript."""

import logging
from typing import Dict

from ..models.transcription import Transcript, TranscriptEvent

logger = logging.getLogger(__name__)


class TranscriptReconciler:
    """Pure state machine over TranscriptEvents.

    Final events with a sequence are stored per span and the committed text is
    re-derived from all spans, so a span reported twice is never duplicated.
    Final events without a sequence revise the whole transcript. A final
    event is only accepted when it does not shrink the committed text.
    """

    def __init__(self):
        self._base_text = ""
        self._spans: Dict[int, str] = {}
        self._committed_final = ""
        self._latest_interim = ""

    def apply(self, event: TranscriptEvent) -> bool:
        """Apply one event.

        Returns:
            True if the visible transcript changed
        """
        text = " ".join(event.text.split())
        if not text:
            return False

        if not event.final:
            if text == self._latest_interim:
                return False
            self._latest_interim = text
            return True

        if event.sequence is None:
            base_text, spans = text, {}
        else:
            base_text, spans = self._base_text, dict(self._spans)
            spans[event.sequence] = text

        derived = self._derive(base_text, spans)
        if derived == self._committed_final:
            # A re-delivered final changes nothing, interim text included
            return False
        if len(derived) < len(self._committed_final):
            logger.debug(f"Ignoring revision that would shrink the transcript: '{text}'")
            return False

        self._base_text = base_text
        self._spans = spans
        self._committed_final = derived
        self._latest_interim = ""
        return True

    @staticmethod
    def _derive(base_text: str, spans: Dict[int, str]) -> str:
        parts = [base_text] if base_text else []
        parts.extend(spans[key] for key in sorted(spans))
        return " ".join(parts)

    def current_transcript(self) -> Transcript:
        return Transcript(final_text=self._committed_final, interim_text=self._latest_interim)

    def reset(self) -> None:
        self._base_text = ""
        self._spans = {}
        self._committed_final = ""
        self._latest_interim = ""
