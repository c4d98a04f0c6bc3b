"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Drives one capture session through convert -> transcribe -> transform.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Type, TypeVar

from .errors import (
    ConversionFailed,
    NoAudioCaptured,
    PipelineError,
    TranscriptionFailed,
    TransformationFailed,
)
from .events import (
    MISLEADING_MESSAGE,
    PROCESSING_MESSAGE,
    TRANSCRIBING_MESSAGE,
    complete_event,
    error_event,
    status_event,
    streaming_event,
)
from .session import Session, SessionState
from .transcoder import BaseTranscoder
from .transcription import BaseTranscriber
from .transformation import BaseTransformer

logger = logging.getLogger(__name__)

Emit = Callable[[dict], Awaitable[None]]
T = TypeVar("T")


@dataclass
class Pipeline:
    """The external capabilities a session needs, behind their adapters."""

    transcoder: BaseTranscoder
    transcriber: BaseTranscriber
    transformer: BaseTransformer


class SessionOrchestrator:
    """
    Runs the pipeline for a session that has received its stop signal.

    Stages run strictly in sequence and every stage failure is turned into a
    single ``error`` event. Nothing raised by a stage escapes ``run``.
    """

    def __init__(self, session: Session, emit: Emit, pipeline: Pipeline):
        self.session = session
        self.emit = emit
        self.pipeline = pipeline
        self._started = False

    async def run(self) -> None:
        if self._started:
            raise RuntimeError(f"Session {self.session.id} pipeline already ran")
        self._started = True
        session = self.session

        try:
            if session.state is SessionState.FAILED and session.failure_reason == NoAudioCaptured.reason:
                logger.warning("Session %s: stop received with no audio", session.id)
                await self.emit(error_event(NoAudioCaptured().message))
                return
            if session.state is not SessionState.CONVERTING:
                raise RuntimeError(f"Session {session.id} is not ready to process (state {session.state.name})")

            try:
                await self._run_stages()
            except PipelineError as e:
                await self._fail(e)
                return

            session.advance(SessionState.COMPLETE)
            logger.info(
                "Session %s complete: %d chars transcribed, %d chars generated",
                session.id,
                len(session.original_text or ""),
                len(session.transformed_text),
            )
            await self.emit(complete_event(session.original_text or "", session.transformed_text))
        finally:
            session.scratch.cleanup()

    async def _run_stages(self) -> None:
        session = self.session

        await self.emit(status_event("processing", PROCESSING_MESSAGE))
        frame_count = len(session.buffer)
        audio = session.buffer.consume()
        logger.info("Session %s: converting %d frames (%d bytes)", session.id, frame_count, len(audio))
        wav = await self._call(ConversionFailed, "Audio conversion failed", self.pipeline.transcoder.convert(audio, session.scratch))

        session.advance(SessionState.TRANSCRIBING)
        await self.emit(status_event("transcribing", TRANSCRIBING_MESSAGE))
        original = await self._call(TranscriptionFailed, "Transcription failed", self.pipeline.transcriber.transcribe(wav))

        session.set_original(original)
        session.advance(SessionState.TRANSFORMING)
        await self.emit(status_event("misleading", MISLEADING_MESSAGE, original=original))
        await self._stream_transformation(original)

    async def _stream_transformation(self, original: str) -> None:
        session = self.session
        try:
            stream = self.pipeline.transformer.transform(original)
            async for fragment in stream:
                cumulative = session.append_transformed(fragment)
                await self.emit(streaming_event(fragment, cumulative))
        except PipelineError:
            raise
        except Exception as e:
            logger.exception("Session %s: unexpected transformation error", session.id)
            raise TransformationFailed(f"Transformation failed: {e}", partial_text=session.transformed_text) from e

    async def _call(self, failure: Type[PipelineError], label: str, awaitable: Awaitable[T]) -> T:
        """Await one stage, mapping anything untyped onto that stage's failure."""
        try:
            return await awaitable
        except PipelineError:
            raise
        except Exception as e:
            logger.exception("Session %s: unexpected error (%s)", self.session.id, label)
            raise failure(f"{label}: {e}") from e

    async def _fail(self, error: PipelineError) -> None:
        session = self.session
        if isinstance(error, TransformationFailed) and error.partial_text:
            logger.warning(
                "Session %s: %s (partial output kept: %r)", session.id, error.message, error.partial_text
            )
        else:
            logger.warning("Session %s: %s", session.id, error.message)
        session.fail(error.reason)
        await self.emit(error_event(error.message))
