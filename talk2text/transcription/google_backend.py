"""Google Speech-to-Text continuous recognizer."""

import logging
import queue
import threading
from threading import Thread
from typing import Iterator, Optional

from google.api_core import exceptions as gax_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ..exceptions import ConnectFailedError, RecognizerAlreadyRunningError
from ..models.transcription import TranscriptEvent
from .base import ContinuousRecognizer

logger = logging.getLogger(__name__)


class GoogleContinuousRecognizer(ContinuousRecognizer):
    """Streaming recognition against Google Speech-to-Text.

    Each ``start()`` opens one ``streaming_recognize`` call on a worker
    thread. Google ends streams on its own (stream duration limit, long
    silence), which is reported through ``on_end``.
    """

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = True,
                 model: Optional[str] = None):
        """Initialize Google recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the pushed linear16 audio
            language: Language code (e.g., 'en-US', 'es-ES')
            enable_automatic_punctuation: Enable automatic punctuation
            model: Optional recognition model name
        """
        super().__init__()
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.language = language
        self.client: Optional[speech.SpeechClient] = None
        self.project_id = None

        config_kwargs = dict(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sample_rate,
            language_code=language,
            enable_automatic_punctuation=enable_automatic_punctuation,
        )
        if model:
            config_kwargs["model"] = model
        self.config = speech.RecognitionConfig(**config_kwargs)
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=self.config,
            interim_results=True,
            single_utterance=False,
        )

        self._lock = threading.Lock()
        self._running = False
        self._audio_queue: Optional[queue.Queue] = None
        self._thread: Optional[Thread] = None

    def initialize(self) -> None:
        """Load service account credentials and create the client."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                raise RecognizerAlreadyRunningError()
            if self.client is None:
                try:
                    self.initialize()
                except (OSError, ValueError, auth_exceptions.GoogleAuthError) as e:
                    raise ConnectFailedError(f"Could not load Google credentials: {e}") from e

            audio_queue = queue.Queue()
            self._audio_queue = audio_queue
            self._running = True
            self._thread = Thread(target=self._run_stream, args=(audio_queue,), daemon=True)
            self._thread.name = "GoogleRecognizerThread"
            self._thread.start()

    def push_audio(self, audio_data: bytes) -> None:
        audio_queue = self._audio_queue
        if audio_queue is not None:
            audio_queue.put(audio_data)

    def stop(self) -> None:
        """Half-close the current stream; the worker thread ends once Google replies."""
        with self._lock:
            audio_queue, self._audio_queue = self._audio_queue, None
        if audio_queue is not None:
            audio_queue.put(None)

    @staticmethod
    def _requests(audio_queue: queue.Queue) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            audio_data = audio_queue.get()
            if audio_data is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=audio_data)

    def _run_stream(self, audio_queue: queue.Queue) -> None:
        """Internal method: one streaming_recognize call in the worker thread."""
        try:
            responses = self.client.streaming_recognize(self.streaming_config, self._requests(audio_queue))
            for response in responses:
                for result in response.results:
                    if not result.alternatives:
                        continue
                    event = TranscriptEvent(text=result.alternatives[0].transcript, final=result.is_final)
                    logger.debug(f"Google result: '{event.text}' (final={event.final})")
                    if self.on_result:
                        self.on_result(event)
        except (gax_exceptions.OutOfRange, gax_exceptions.DeadlineExceeded) as e:
            logger.info(f"Google stream ended by the service: {e}")
        except (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated) as e:
            self._report_error(f"Google Speech rejected the credentials: {e}", fatal=True)
        except gax_exceptions.GoogleAPICallError as e:
            self._report_error(f"Google Speech stream error: {e}", fatal=False)
        finally:
            with self._lock:
                self._running = False
                if self._audio_queue is audio_queue:
                    self._audio_queue = None
            logger.debug("Google stream finished")
            if self.on_end:
                self.on_end()

    def _report_error(self, message: str, fatal: bool) -> None:
        logger.warning(message)
        if self.on_error:
            self.on_error(message, fatal)
