"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

ffmpeg-backed conversion of captured container audio into 16 kHz mono WAV.
"""
from __future__ import annotations

import asyncio
import asyncio.subprocess as aio_subprocess
import logging
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import settings
from .errors import ConversionFailed

logger = logging.getLogger(__name__)

PCM_SAMPLE_RATE = 16000
PCM_CHANNELS = 1
STDERR_TAIL_CHARS = 500


@dataclass
class ScratchFiles:
    """Temp files for one pipeline run, named after the owning session."""

    raw_path: Path
    wav_path: Path

    @classmethod
    def for_session(cls, session_id: str, scratch_dir: Optional[str] = None) -> "ScratchFiles":
        base = Path(scratch_dir or tempfile.gettempdir())
        return cls(
            raw_path=base / f"misspeak-{session_id}.raw",
            wav_path=base / f"misspeak-{session_id}.wav",
        )

    def existing(self) -> list[Path]:
        return [path for path in (self.raw_path, self.wav_path) if path.exists()]

    def cleanup(self) -> None:
        """Remove whichever scratch files exist. Safe to call repeatedly."""
        for path in (self.raw_path, self.wav_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove scratch file %s: %s", path, e)


class BaseTranscoder(ABC):
    """Turns captured container bytes into a fixed-format WAV container."""

    @abstractmethod
    async def convert(self, data: bytes, scratch: ScratchFiles) -> bytes:
        """Return 16 kHz mono WAV bytes or raise ConversionFailed."""
        pass


class FfmpegTranscoder(BaseTranscoder):
    """Run ffmpeg file-to-file over the session's scratch paths."""

    def __init__(
        self,
        binary: str = "ffmpeg",
        *,
        sample_rate: int = PCM_SAMPLE_RATE,
        channels: int = PCM_CHANNELS,
        timeout: float = 30.0,
    ) -> None:
        self.binary = binary
        self.sample_rate = sample_rate
        self.channels = channels
        self.timeout = timeout

    def build_args(self, scratch: ScratchFiles) -> list[str]:
        # Browser recorders can emit non-monotonic DTS in WebM chunks; synthesize
        # PTS so ffmpeg keeps decoding instead of stalling.
        return [
            self.binary,
            "-nostdin",
            "-loglevel",
            "error",
            "-fflags",
            "+genpts+igndts",
            "-y",
            "-i",
            str(scratch.raw_path),
            "-vn",
            "-ac",
            str(self.channels),
            "-ar",
            str(self.sample_rate),
            "-c:a",
            "pcm_s16le",
            "-f",
            "wav",
            str(scratch.wav_path),
        ]

    async def convert(self, data: bytes, scratch: ScratchFiles) -> bytes:
        try:
            await asyncio.to_thread(scratch.raw_path.write_bytes, data)
        except OSError as e:
            raise ConversionFailed(f"Could not write captured audio: {e}") from e

        logger.info("Converting %d bytes (%s -> %s)", len(data), scratch.raw_path.name, scratch.wav_path.name)
        try:
            process = await aio_subprocess.create_subprocess_exec(
                *self.build_args(scratch),
                stdin=aio_subprocess.DEVNULL,
                stdout=aio_subprocess.DEVNULL,
                stderr=aio_subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ConversionFailed(f"Audio converter unavailable: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ConversionFailed(f"Audio conversion timed out after {self.timeout:.0f}s")

        stderr_text = (stderr or b"").decode(errors="ignore").strip()
        if process.returncode != 0:
            logger.warning("ffmpeg exited with %s: %s", process.returncode, stderr_text)
            raise ConversionFailed(
                f"Audio conversion failed (exit code {process.returncode})",
                stderr=stderr_text[-STDERR_TAIL_CHARS:],
            )

        try:
            wav = await asyncio.to_thread(scratch.wav_path.read_bytes)
        except OSError as e:
            raise ConversionFailed(f"Converted audio missing: {e}") from e
        if not wav:
            raise ConversionFailed("Audio conversion produced no output")
        return wav


def get_transcoder() -> BaseTranscoder:
    return FfmpegTranscoder(settings.ffmpeg_binary, timeout=settings.transcode_timeout_seconds)
