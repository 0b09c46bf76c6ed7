"""Streaming recognition over a persistent websocket (Deepgram live protocol)."""

import asyncio
import json
import logging
from typing import Dict, Optional

import aiohttp

from ..audio.buffer import SessionAudioBuffer
from ..exceptions import ConnectFailedError, MalformedFrameError, RemoteClosedError
from ..models.audio import AudioChunk
from ..models.transcription import TranscriptEvent
from .base import ClosedCallback, EventCallback, RecognitionChannel

logger = logging.getLogger(__name__)

MIN_API_KEY_LENGTH = 20


def parse_transcript_message(raw: str) -> Optional[TranscriptEvent]:
    """Decode one inbound JSON frame.

    Returns:
        TranscriptEvent, or None for message types that carry no transcript

    Raises:
        MalformedFrameError: If the frame is not a valid results message
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedFrameError(f"Invalid JSON frame: {e}") from e
    if not isinstance(data, dict):
        raise MalformedFrameError("Expected a JSON object")

    if data.get("type", "Results") != "Results":
        return None

    try:
        transcript = data["channel"]["alternatives"][0]["transcript"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedFrameError(f"Results frame without transcript alternative: {e!r}") from e
    if not isinstance(transcript, str):
        raise MalformedFrameError("Transcript is not a string")

    # Span start time (seconds) identifies the utterance the result belongs to
    start = data.get("start")
    sequence = int(round(start * 1000)) if isinstance(start, (int, float)) else None

    return TranscriptEvent(text=transcript, final=bool(data.get("is_final", False)), sequence=sequence)


class StreamingRecognitionChannel(RecognitionChannel):
    """Forwards audio as binary frames and decodes JSON transcript frames."""

    name = "streaming"

    def __init__(self,
                 api_key: str,
                 url: str = "wss://api.deepgram.com/v1/listen",
                 sample_rate: int = 16000,
                 channels: int = 1,
                 language: str = "en-US",
                 model: Optional[str] = None,
                 auth_scheme: str = "Token",
                 connect_timeout: float = 10.0,
                 close_timeout: float = 2.0,
                 max_buffer_seconds: float = 300.0):
        """Initialize streaming channel.

        Args:
            api_key: Credential sent in the Authorization header
            url: Websocket endpoint
            sample_rate: Sample rate of the forwarded linear16 audio
            channels: Channel count of the forwarded audio
            language: Recognition language
            model: Optional model name passed to the endpoint
            auth_scheme: Authorization scheme ("Token" for Deepgram, "Bearer" for others)
            connect_timeout: Maximum time for the websocket handshake
            close_timeout: Maximum time to wait for trailing results on close
            max_buffer_seconds: Audio kept for the final transcription pass
        """
        self.api_key = api_key
        self.url = url
        self.sample_rate = sample_rate
        self.channels = channels
        self.language = language
        self.model = model
        self.auth_scheme = auth_scheme
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout
        self.audio_buffer = SessionAudioBuffer(max_buffer_seconds, sample_rate, channels)

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._sender_task: Optional[asyncio.Task] = None
        self._receiver_task: Optional[asyncio.Task] = None
        self._on_event: Optional[EventCallback] = None
        self._on_closed: Optional[ClosedCallback] = None
        self._open = False
        self._closing = False
        self.frames_sent = 0

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def query_params(self) -> Dict[str, str]:
        params = {
            "encoding": "linear16",
            "sample_rate": str(self.sample_rate),
            "channels": str(self.channels),
            "interim_results": "true",
            "language": self.language,
        }
        if self.model:
            params["model"] = self.model
        return params

    async def open(self, on_event: EventCallback, on_closed: ClosedCallback) -> None:
        if self._open:
            logger.warning("Streaming channel already open")
            return
        if not self.api_key or len(self.api_key) < MIN_API_KEY_LENGTH:
            raise ConnectFailedError("Invalid Deepgram API key format")

        self._loop = asyncio.get_running_loop()
        self._on_event = on_event
        self._on_closed = on_closed
        self._closing = False
        self.frames_sent = 0
        self.audio_buffer.clear()

        headers = {"Authorization": f"{self.auth_scheme} {self.api_key}"}
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self.url, params=self.query_params, headers=headers),
                timeout=self.connect_timeout,
            )
        except aiohttp.WSServerHandshakeError as e:
            await self._release()
            if e.status in (401, 403):
                raise ConnectFailedError("Invalid API key. Please check your Deepgram API key.") from e
            raise ConnectFailedError(f"Speech service rejected the connection (HTTP {e.status})") from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            await self._release()
            raise ConnectFailedError(f"Failed to connect to the speech service: {e or type(e).__name__}") from e
        except asyncio.CancelledError:
            await self._release()
            raise

        self._outbox = asyncio.Queue()
        self._open = True
        self._sender_task = asyncio.create_task(self._send_loop())
        self._receiver_task = asyncio.create_task(self._receive_loop())
        logger.info(f"Connected to streaming recognition endpoint {self.url}")

    def send(self, chunk: AudioChunk) -> None:
        if not self._open or self._loop is None:
            return
        self.audio_buffer.add_audio_chunk(chunk.data)
        try:
            self._loop.call_soon_threadsafe(self._enqueue, chunk.data)
        except RuntimeError:
            logger.debug("Event loop closed, dropping audio chunk")

    def _enqueue(self, audio_data: bytes) -> None:
        if self._open and self._outbox is not None:
            self._outbox.put_nowait(audio_data)

    async def _send_loop(self) -> None:
        """Forward queued audio frames in capture order."""
        while True:
            audio_data = await self._outbox.get()
            if audio_data is None:
                break
            try:
                await self._ws.send_bytes(audio_data)
                self.frames_sent += 1
            except (ConnectionResetError, aiohttp.ClientError, RuntimeError) as e:
                logger.warning(f"Failed to send audio frame: {e}")
                # Nothing drains the outbox once this loop exits
                self._open = False
                break

    async def _receive_loop(self) -> None:
        ws = self._ws
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                logger.warning("Dropping unexpected binary frame from speech service")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"Streaming channel error: {ws.exception()}")
                break

        if not self._closing:
            self._open = False
            logger.warning(f"Speech service closed the connection (code {ws.close_code})")
            if self._on_closed:
                self._on_closed(RemoteClosedError(code=ws.close_code))

    def _handle_message(self, raw: str) -> None:
        try:
            event = parse_transcript_message(raw)
        except MalformedFrameError as e:
            logger.warning(f"Dropping malformed recognition frame: {e.message}")
            return
        if event is not None and self._on_event:
            self._on_event(event)

    async def close(self) -> None:
        if self._session is None and not self._open:
            return
        self._closing = True
        self._open = False

        if self._outbox is not None:
            self._outbox.put_nowait(None)
        if self._sender_task is not None:
            await self._wait_or_cancel(self._sender_task)

        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                # Ask the endpoint to flush trailing results before closing
                await ws.send_str(json.dumps({"type": "CloseStream"}))
            except (ConnectionResetError, aiohttp.ClientError, RuntimeError) as e:
                logger.debug(f"Could not send CloseStream: {e}")

        if self._receiver_task is not None:
            await self._wait_or_cancel(self._receiver_task)

        await self._release()
        logger.info(f"Streaming channel closed after {self.frames_sent} frames")

    async def _wait_or_cancel(self, task: asyncio.Task) -> None:
        _, pending = await asyncio.wait({task}, timeout=self.close_timeout)
        if pending:
            task.cancel()
            await asyncio.wait({task})

    async def _release(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
        session, self._session = self._session, None
        if session is not None:
            await session.close()
        self._sender_task = None
        self._receiver_task = None
        self._outbox = None

    @property
    def supports_finalize(self) -> bool:
        return True

    def take_buffered_audio(self) -> Optional[bytes]:
        audio = self.audio_buffer.drain()
        return audio or None
