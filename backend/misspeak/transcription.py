"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Speech-to-text through a hosted Whisper model.
"""
from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .config import settings
from .errors import RemoteEngineError, TranscriptionFailed
from .replicate_client import ReplicateClient, get_replicate_client

logger = logging.getLogger(__name__)


def wav_data_uri(wav: bytes) -> str:
    """Inline audio for engines that cannot fetch from the capture host."""
    return "data:audio/wav;base64," + base64.b64encode(wav).decode("ascii")


def join_segments(segments: List[Dict[str, Any]]) -> str:
    """Join segment texts with a single space, keeping segment order."""
    return " ".join((segment.get("text") or "").strip() for segment in segments)


def extract_text(output: Any) -> str:
    """Derive transcript text from a prediction output."""
    if not isinstance(output, dict):
        raise TranscriptionFailed("Transcription returned an unexpected response")

    segments = output.get("segments")
    if segments is None:
        fallback = output.get("transcription")
        if isinstance(fallback, str):
            return fallback.strip()
        raise TranscriptionFailed("Transcription response has no segments")
    if not isinstance(segments, list) or not all(isinstance(s, dict) for s in segments):
        raise TranscriptionFailed("Transcription segments are malformed")
    return join_segments(segments)


class BaseTranscriber(ABC):
    """Turns converted audio into plain text."""

    @abstractmethod
    async def transcribe(self, wav: bytes) -> str:
        """Transcribe inline WAV audio or raise TranscriptionFailed."""
        pass

    @abstractmethod
    async def transcribe_url(self, audio_url: str) -> str:
        """Transcribe audio the engine can download itself."""
        pass


class ReplicateTranscriber(BaseTranscriber):
    def __init__(
        self,
        client: ReplicateClient,
        model: str,
        language: str = "auto",
        timeout: float = 120.0,
    ):
        self.client = client
        self.model = model
        self.language = language
        self.timeout = timeout

    def build_input(self, audio: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "audio": audio,
            "transcription": "plain text",
            "condition_on_previous_text": False,
        }
        if self.language and self.language.lower() != "auto":
            payload["language"] = self.language
        return payload

    async def _run(self, audio: str) -> str:
        try:
            output = await self.client.predict(self.model, self.build_input(audio), timeout=self.timeout)
        except RemoteEngineError as e:
            logger.warning("Transcription via %s failed: %s", self.model, e)
            raise TranscriptionFailed(f"Transcription failed: {e}") from e
        text = extract_text(output)
        logger.info("Transcribed %d characters", len(text))
        return text

    async def transcribe(self, wav: bytes) -> str:
        return await self._run(wav_data_uri(wav))

    async def transcribe_url(self, audio_url: str) -> str:
        return await self._run(audio_url)


def get_transcriber(client: Optional[ReplicateClient] = None) -> BaseTranscriber:
    return ReplicateTranscriber(
        client or get_replicate_client(),
        settings.transcription_model,
        language=settings.transcription_language,
        timeout=settings.transcription_timeout_seconds,
    )
