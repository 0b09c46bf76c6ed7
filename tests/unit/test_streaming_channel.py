"""Unit tests for the websocket streaming channel."""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, Mock

from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from talk2text.exceptions import ConnectFailedError, MalformedFrameError, RemoteClosedError
from talk2text.models.audio import AudioChunk
from talk2text.models.session import ErrorKind
from talk2text.models.transcription import TranscriptEvent
from talk2text.transcription.streaming import StreamingRecognitionChannel, parse_transcript_message


API_KEY = "0123456789abcdef0123456789abcdef"


def results_frame(transcript, is_final=False, start=0.0):
    return json.dumps({
        "type": "Results",
        "start": start,
        "is_final": is_final,
        "channel": {"alternatives": [{"transcript": transcript, "confidence": 0.9}]},
    })


def make_chunk(n, data=None):
    return AudioChunk(data=data or bytes([n]) * 3200, timestamp=0.0, sequence_number=n)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class FakeListenEndpoint:
    """Websocket endpoint that answers audio frames with interim results."""

    def __init__(self, close_after_first_frame=False, send_garbage=False):
        self.close_after_first_frame = close_after_first_frame
        self.send_garbage = send_garbage
        self.frames = []
        self.query = None
        self.authorization = None
        self.close_stream_received = False

    async def handler(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.query = dict(request.query)
        self.authorization = request.headers.get("Authorization")

        async for msg in ws:
            if msg.type == WSMsgType.BINARY:
                self.frames.append(msg.data)
                if self.send_garbage:
                    await ws.send_str("not json")
                    await ws.send_str(json.dumps({"type": "Results", "channel": {}}))
                await ws.send_str(results_frame(f"frame {len(self.frames)}"))
                if self.close_after_first_frame:
                    await ws.close()
            elif msg.type == WSMsgType.TEXT:
                if json.loads(msg.data).get("type") == "CloseStream":
                    self.close_stream_received = True
                    await ws.send_str(results_frame("all frames", is_final=True))
                    await ws.close()
        return ws


async def serve(handler):
    app = web.Application()
    app.router.add_get("/v1/listen", handler)
    server = TestServer(app)
    await server.start_server()
    return server, str(server.make_url("/v1/listen"))


@pytest.mark.unit
class TestParseTranscriptMessage:

    def test_results_frame(self):
        event = parse_transcript_message(results_frame("hello world", is_final=True, start=1.25))

        assert event == TranscriptEvent(text="hello world", final=True, sequence=1250)

    def test_interim_frame(self):
        event = parse_transcript_message(results_frame("hel"))

        assert event.final is False
        assert event.sequence == 0

    def test_missing_start_has_no_sequence(self):
        raw = json.dumps({"type": "Results", "channel": {"alternatives": [{"transcript": "hi"}]}})
        assert parse_transcript_message(raw).sequence is None

    def test_other_message_types_are_ignored(self):
        assert parse_transcript_message(json.dumps({"type": "Metadata", "request_id": "x"})) is None
        assert parse_transcript_message(json.dumps({"type": "SpeechStarted"})) is None

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        json.dumps({"type": "Results"}),
        json.dumps({"type": "Results", "channel": {"alternatives": []}}),
        json.dumps({"type": "Results", "channel": {"alternatives": [{"transcript": 42}]}}),
    ])
    def test_malformed_frames(self, raw):
        with pytest.raises(MalformedFrameError) as exc_info:
            parse_transcript_message(raw)
        assert exc_info.value.kind is ErrorKind.MALFORMED


@pytest.mark.unit
class TestStreamingRecognitionChannel:

    def test_query_params(self):
        channel = StreamingRecognitionChannel(API_KEY, model="nova-2")

        assert channel.query_params == {
            "encoding": "linear16",
            "sample_rate": "16000",
            "channels": "1",
            "interim_results": "true",
            "language": "en-US",
            "model": "nova-2",
        }

    def test_invalid_key_format(self):
        channel = StreamingRecognitionChannel("short")

        with pytest.raises(ConnectFailedError) as exc_info:
            asyncio.run(channel.open(Mock(), Mock()))

        assert "API key" in exc_info.value.message
        assert channel.is_open is False

    def test_send_when_not_open_is_ignored(self):
        channel = StreamingRecognitionChannel(API_KEY)

        channel.send(make_chunk(1))

        assert channel.take_buffered_audio() is None

    def test_send_failure_stops_accepting_audio(self):
        channel = StreamingRecognitionChannel(API_KEY)
        ws = Mock()
        ws.send_bytes = AsyncMock(side_effect=ConnectionResetError("connection lost"))

        async def scenario():
            channel._loop = asyncio.get_running_loop()
            channel._ws = ws
            channel._outbox = asyncio.Queue()
            channel._open = True
            channel._outbox.put_nowait(b"\x01\x02")
            await channel._send_loop()

            channel.send(make_chunk(2))
            await asyncio.sleep(0)
            return channel._outbox.qsize()

        assert asyncio.run(scenario()) == 0
        assert channel.is_open is False
        assert channel.frames_sent == 0
        assert channel.take_buffered_audio() is None
        ws.send_bytes.assert_awaited_once_with(b"\x01\x02")

    def test_streams_audio_and_receives_events(self):
        endpoint = FakeListenEndpoint()
        events = []
        on_closed = Mock()

        async def scenario():
            server, url = await serve(endpoint.handler)
            channel = StreamingRecognitionChannel(API_KEY, url=url, close_timeout=1.0)
            try:
                await channel.open(events.append, on_closed)
                assert channel.is_open

                for n in (1, 2, 3):
                    channel.send(make_chunk(n))
                await wait_until(lambda: len(events) == 3)

                await channel.close()
                return channel
            finally:
                await server.close()

        channel = asyncio.run(scenario())

        assert endpoint.frames == [make_chunk(n).data for n in (1, 2, 3)]
        assert endpoint.query["encoding"] == "linear16"
        assert endpoint.query["sample_rate"] == "16000"
        assert endpoint.query["interim_results"] == "true"
        assert endpoint.authorization == f"Token {API_KEY}"
        assert endpoint.close_stream_received

        assert [event.text for event in events] == ["frame 1", "frame 2", "frame 3", "all frames"]
        assert events[-1].final is True
        on_closed.assert_not_called()
        assert channel.is_open is False
        assert channel.take_buffered_audio() == b"".join(make_chunk(n).data for n in (1, 2, 3))

    def test_malformed_frames_do_not_end_session(self):
        endpoint = FakeListenEndpoint(send_garbage=True)
        events = []
        on_closed = Mock()

        async def scenario():
            server, url = await serve(endpoint.handler)
            channel = StreamingRecognitionChannel(API_KEY, url=url)
            try:
                await channel.open(events.append, on_closed)
                channel.send(make_chunk(1))
                channel.send(make_chunk(2))
                await wait_until(lambda: len(events) == 2)
                assert channel.is_open
                await channel.close()
            finally:
                await server.close()

        asyncio.run(scenario())

        assert [event.text for event in events[:2]] == ["frame 1", "frame 2"]
        on_closed.assert_not_called()

    def test_remote_close_reports_channel_loss(self):
        endpoint = FakeListenEndpoint(close_after_first_frame=True)
        closures = []

        async def scenario():
            server, url = await serve(endpoint.handler)
            channel = StreamingRecognitionChannel(API_KEY, url=url)
            try:
                await channel.open(Mock(), closures.append)
                channel.send(make_chunk(1))
                await wait_until(lambda: closures)

                assert channel.is_open is False
                channel.send(make_chunk(2))
                await channel.close()
            finally:
                await server.close()

        asyncio.run(scenario())

        assert len(closures) == 1
        assert isinstance(closures[0], RemoteClosedError)
        assert closures[0].kind is ErrorKind.REMOTE_CLOSED

    def test_rejected_credentials(self):
        async def reject(request):
            return web.Response(status=401, text="Unauthorized")

        async def scenario():
            server, url = await serve(reject)
            channel = StreamingRecognitionChannel(API_KEY, url=url)
            try:
                with pytest.raises(ConnectFailedError) as exc_info:
                    await channel.open(Mock(), Mock())
                return channel, exc_info.value
            finally:
                await server.close()

        channel, error = asyncio.run(scenario())

        assert "Invalid API key" in error.message
        assert error.kind is ErrorKind.CONNECT_FAILED
        assert channel.is_open is False
        assert channel._session is None

    def test_unreachable_endpoint(self):
        channel = StreamingRecognitionChannel(API_KEY, url="http://127.0.0.1:9/v1/listen", connect_timeout=2.0)

        with pytest.raises(ConnectFailedError):
            asyncio.run(channel.open(Mock(), Mock()))

        assert channel._session is None

    def test_close_is_idempotent(self):
        channel = StreamingRecognitionChannel(API_KEY)

        async def scenario():
            await channel.close()
            await channel.close()

        asyncio.run(scenario())
        assert channel.is_open is False
