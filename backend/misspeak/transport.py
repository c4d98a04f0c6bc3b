"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

WebSocket side of a capture session: frame intake and event delivery.
"""
from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Optional, Tuple, Union

from fastapi import WebSocket, WebSocketDisconnect

from .errors import TransportFailure
from .events import is_terminal
from .orchestrator import Pipeline, SessionOrchestrator
from .session import Session

logger = logging.getLogger(__name__)

STOP_SIGNAL = "stop"


class FrameKind(enum.Enum):
    AUDIO = "audio"
    STOP = "stop"
    IGNORED = "ignored"


def classify_frame(payload: Union[bytes, str]) -> Tuple[FrameKind, bytes]:
    """
    Decide whether an inbound payload is audio or a control message.

    Only payloads that parse as a JSON object are inspected for control
    intent: ``{"type": "stop"}`` stops capture and any other object is
    ignored. Everything else, including undecodable binary, is audio.
    """
    raw = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    text = payload if isinstance(payload, str) else None
    if text is None and raw[:1] in (b"{", b" ", b"\n", b"\r", b"\t"):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = None

    if text is not None:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            if parsed.get("type") == STOP_SIGNAL:
                return FrameKind.STOP, b""
            return FrameKind.IGNORED, b""

    return FrameKind.AUDIO, raw


def _payload(message: dict) -> Union[bytes, str]:
    if message.get("bytes") is not None:
        return message["bytes"]
    if message.get("text") is not None:
        return message["text"]
    raise TransportFailure(f"Malformed frame ({message.get('type')})")


class EventSink:
    """Sends events in emission order; drops them once the socket is gone."""

    def __init__(self, websocket: WebSocket, session_id: str):
        self.websocket = websocket
        self.session_id = session_id
        self.closed = False
        self.sent = 0
        self.dropped = 0
        self._lock = asyncio.Lock()

    async def __call__(self, event: dict) -> None:
        async with self._lock:
            if self.closed:
                self.dropped += 1
                logger.debug("Session %s: discarding %s event after disconnect", self.session_id, event.get("status"))
                return
            try:
                await self.websocket.send_json(event)
                self.sent += 1
            except Exception as e:
                # The peer is gone; every later event is undeliverable.
                logger.info("Session %s: send failed, discarding further events: %r", self.session_id, e)
                self.closed = True
                self.dropped += 1
                return

            if is_terminal(event):
                await self._close()

    async def _close(self) -> None:
        self.closed = True
        try:
            await self.websocket.close(code=1000)
        except RuntimeError:
            pass
        except Exception as e:
            logger.warning("Session %s: error closing websocket: %s", self.session_id, e)

    def mark_closed(self) -> None:
        self.closed = True


class AudioConnection:
    """One accepted WebSocket and the session it owns."""

    def __init__(self, websocket: WebSocket, pipeline: Pipeline, session: Optional[Session] = None):
        self.websocket = websocket
        self.pipeline = pipeline
        self.session = session or Session()
        self.sink = EventSink(websocket, self.session.id)
        self.pipeline_task: Optional[asyncio.Task] = None
        self.frames_received = 0
        self.frames_dropped = 0

    async def run(self) -> None:
        session = self.session
        logger.info("Session %s: connection opened", session.id)
        try:
            while True:
                message = await self.websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    break
                self._handle(_payload(message))
        except WebSocketDisconnect:
            pass
        except TransportFailure as e:
            logger.warning("Session %s: discarding session: %s", session.id, e)
            self.sink.mark_closed()
            try:
                await self.websocket.close(code=1003)
            except RuntimeError:
                pass
        except Exception as e:
            logger.error("Session %s: transport error: %r", session.id, e)
        finally:
            self.sink.mark_closed()
            logger.info(
                "Session %s: connection closed after %d buffered frames, %d dropped (state %s)",
                session.id,
                self.frames_received,
                self.frames_dropped,
                session.state.name,
            )
            await self._finish_pipeline()
            session.scratch.cleanup()

    def _handle(self, payload: Union[bytes, str]) -> None:
        kind, data = classify_frame(payload)
        if kind is FrameKind.AUDIO:
            if not data:
                return
            if self.session.add_frame(data):
                self.frames_received += 1
                logger.debug("Session %s: buffered %d bytes (frame %d)", self.session.id, len(data), self.frames_received)
            else:
                self.frames_dropped += 1
        elif kind is FrameKind.STOP:
            if self.session.request_stop():
                orchestrator = SessionOrchestrator(self.session, self.sink, self.pipeline)
                self.pipeline_task = asyncio.create_task(orchestrator.run())
        else:
            logger.debug("Session %s: ignoring control message", self.session.id)

    async def _finish_pipeline(self) -> None:
        """Let an in-flight run finish so its scratch files are removed; its events go nowhere."""
        if self.pipeline_task is None:
            return
        try:
            await self.pipeline_task
        except Exception as e:
            logger.error("Session %s: pipeline crashed: %r", self.session.id, e)
