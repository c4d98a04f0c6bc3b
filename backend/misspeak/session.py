"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Per-connection capture session: audio buffer, lifecycle state and results.
"""
from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from .config import settings
from .errors import InvalidTransition, NoAudioCaptured
from .transcoder import ScratchFiles

logger = logging.getLogger(__name__)


class SessionState(enum.IntEnum):
    """Lifecycle states. Ordering is the only allowed direction of travel."""

    CAPTURING = 0
    CONVERTING = 1
    TRANSCRIBING = 2
    TRANSFORMING = 3
    COMPLETE = 4
    FAILED = 5

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETE, SessionState.FAILED)


class SessionBuffer:
    """Append-only store of audio frames, consumed exactly once."""

    def __init__(self):
        self._frames: List[bytes] = []
        self._size = 0
        self._consumed = False

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def size(self) -> int:
        return self._size

    @property
    def consumed(self) -> bool:
        return self._consumed

    def append(self, frame: bytes) -> None:
        if self._consumed:
            raise RuntimeError("Buffer already consumed")
        if not frame:
            return
        self._frames.append(bytes(frame))
        self._size += len(frame)

    def consume(self) -> bytes:
        """Return every frame joined in arrival order and seal the buffer."""
        if self._consumed:
            raise RuntimeError("Buffer already consumed")
        self._consumed = True
        data = b"".join(self._frames)
        self._frames = []
        return data


@dataclass
class Session:
    """One client's capture-to-transformed-text lifecycle."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    buffer: SessionBuffer = field(default_factory=SessionBuffer)
    state: SessionState = SessionState.CAPTURING
    original_text: Optional[str] = None
    transformed_text: str = ""
    failure_reason: Optional[str] = None
    scratch: Optional[ScratchFiles] = None

    def __post_init__(self):
        if self.scratch is None:
            self.scratch = ScratchFiles.for_session(self.id, settings.scratch_dir)

    @property
    def is_capturing(self) -> bool:
        return self.state is SessionState.CAPTURING

    def add_frame(self, frame: bytes) -> bool:
        """Buffer an audio frame. Frames arriving after capture ended are dropped."""
        if not self.is_capturing:
            logger.debug("Session %s: dropping %d-byte frame in state %s", self.id, len(frame), self.state.name)
            return False
        self.buffer.append(frame)
        return True

    def request_stop(self) -> bool:
        """
        Leave the capturing state in response to a stop signal.

        Returns True only for the first stop received while capturing. The
        session moves to CONVERTING, or straight to FAILED when no audio was
        buffered. Later stop signals are no-ops.
        """
        if not self.is_capturing:
            logger.info("Session %s: ignoring stop signal in state %s", self.id, self.state.name)
            return False
        if self.buffer.size == 0:
            self.fail(NoAudioCaptured.reason)
        else:
            self.advance(SessionState.CONVERTING)
        return True

    def advance(self, target: SessionState) -> None:
        if target <= self.state or self.state.is_terminal:
            raise InvalidTransition(f"Cannot move session from {self.state.name} to {target.name}")
        if target is not SessionState.FAILED and target != self.state + 1:
            raise InvalidTransition(f"Cannot skip from {self.state.name} to {target.name}")
        logger.info("Session %s: %s -> %s", self.id, self.state.name, target.name)
        self.state = target

    def set_original(self, text: str) -> None:
        if self.original_text is not None:
            raise InvalidTransition("Original text is already set")
        self.original_text = text

    def append_transformed(self, fragment: str) -> str:
        if self.state is not SessionState.TRANSFORMING:
            raise InvalidTransition(f"Cannot append text in state {self.state.name}")
        self.transformed_text += fragment
        return self.transformed_text

    def fail(self, reason: str) -> None:
        self.failure_reason = reason
        self.advance(SessionState.FAILED)
