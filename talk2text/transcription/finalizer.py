"""One-shot prerecorded transcription used to finalize a streaming session."""

import asyncio
import logging

import aiohttp

from ..exceptions import FinalizeError

logger = logging.getLogger(__name__)


class PrerecordedTranscriber:
    """Sends a whole session's audio to the prerecorded endpoint once."""

    def __init__(self,
                 api_key: str,
                 url: str = "https://api.deepgram.com/v1/listen",
                 model: str = "nova-2",
                 sample_rate: int = 16000,
                 channels: int = 1,
                 language: str = "en-US",
                 auth_scheme: str = "Token",
                 timeout: float = 15.0):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.sample_rate = sample_rate
        self.channels = channels
        self.language = language
        self.auth_scheme = auth_scheme
        self.timeout = timeout

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe raw linear16 audio.

        Args:
            audio: Session audio as 16-bit PCM bytes

        Returns:
            Transcript text (may be empty)

        Raises:
            FinalizeError: If the request fails or the response is unusable
        """
        headers = {
            "Authorization": f"{self.auth_scheme} {self.api_key}",
            "Content-Type": "application/octet-stream",
        }
        params = {
            "model": self.model,
            "smart_format": "true",
            "encoding": "linear16",
            "sample_rate": str(self.sample_rate),
            "channels": str(self.channels),
            "language": self.language,
        }

        logger.info(f"Running final transcription pass on {len(audio)} bytes")
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.post(self.url, params=params, headers=headers, data=audio) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise FinalizeError(f"Final transcription pass failed: HTTP {response.status} - {error_text[:200]}")
                    result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise FinalizeError(f"Final transcription pass failed: {e or type(e).__name__}") from e

        try:
            transcript = result["results"]["channels"][0]["alternatives"][0]["transcript"]
        except (KeyError, IndexError, TypeError) as e:
            raise FinalizeError("Final transcription pass returned an unexpected response") from e

        return transcript or ""
