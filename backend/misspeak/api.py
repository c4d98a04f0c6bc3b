"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

API router definitions for health, direct transcription and the audio WebSocket.
"""
import datetime as dt
import logging
import time

from fastapi import APIRouter, Depends, HTTPException, WebSocket, status

from .config import settings
from .errors import TranscriptionFailed
from .orchestrator import Pipeline
from .schemas import HealthOut, TranscribeRequest, TranscribeResponse
from .transcoder import get_transcoder
from .transcription import BaseTranscriber, get_transcriber
from .transformation import get_transformer
from .transport import AudioConnection

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

router = APIRouter()


def get_pipeline() -> Pipeline:
    """Adapters used by audio sessions; overridden in tests."""
    return Pipeline(
        transcoder=get_transcoder(),
        transcriber=get_transcriber(),
        transformer=get_transformer(),
    )


def get_direct_transcriber() -> BaseTranscriber:
    return get_transcriber()


@router.get("/health", response_model=HealthOut)
async def health():
    """Liveness probe for the API service."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }


@router.post("/api/transcribe", response_model=TranscribeResponse)
async def transcribe_hosted_audio(
    request: TranscribeRequest,
    transcriber: BaseTranscriber = Depends(get_direct_transcriber),
):
    """Transcribe audio that is already reachable by URL."""
    try:
        text = await transcriber.transcribe_url(request.audio_url)
    except TranscriptionFailed as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return {"text": text}


@router.websocket("/audio")
async def audio_stream(websocket: WebSocket, pipeline: Pipeline = Depends(get_pipeline)):
    """Capture audio frames until a stop signal, then stream back the results."""
    await websocket.accept()
    connection = AudioConnection(websocket, pipeline)
    await connection.run()
