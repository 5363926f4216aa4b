"""Speech-to-text via the OpenAI audio API."""

from __future__ import annotations

import logging
import time
from typing import Optional

from openai import AsyncOpenAI

from ..config import get_settings
from ..errors import TranscriptionError
from ..models import TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Turns recorded audio bytes into text. The text is validated elsewhere."""

    def __init__(self, model: str, client: Optional[AsyncOpenAI] = None) -> None:
        self.model = model
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily so the app starts without OPENAI_API_KEY
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def transcribe(self, audio: bytes, filename: str = "recording.webm") -> TranscriptionResult:
        """
        Transcribe one recording.

        Args:
            audio: Raw audio bytes as uploaded by the client
            filename: Original file name; its extension tells the API the format

        Returns:
            TranscriptionResult with the text and timing

        Raises:
            TranscriptionError: If the audio is empty or the API call fails
        """
        if not audio:
            raise TranscriptionError("Audio file is empty")

        started = time.perf_counter()
        try:
            response = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio),
                language="en",
            )
        except Exception as e:
            logger.error(f"Transcription failed for {filename}: {e}")
            raise TranscriptionError(f"Transcription failed: {e}") from e

        elapsed = time.perf_counter() - started
        text = (getattr(response, "text", "") or "").strip()
        logger.info(f"Transcribed {filename} ({len(audio)} bytes) in {elapsed:.2f}s")

        return TranscriptionResult(text=text, model=self.model, processing_time=elapsed)


_transcription_service: Optional[TranscriptionService] = None


def get_transcription_service() -> TranscriptionService:
    """Get or create the transcription service singleton."""
    global _transcription_service
    if _transcription_service is None:
        _transcription_service = TranscriptionService(get_settings().transcription_model)
    return _transcription_service
