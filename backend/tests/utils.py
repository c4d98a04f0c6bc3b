import asyncio
from typing import List, Optional

from misspeak.session import Session
from misspeak.transcoder import BaseTranscoder, ScratchFiles
from misspeak.transcription import BaseTranscriber
from misspeak.transformation import BaseTransformer, TransformationStream

FAKE_WAV = b"RIFF\x24\x00\x00\x00WAVEfmt "


class FakeTranscoder(BaseTranscoder):
    """Writes the same scratch files ffmpeg would, without running it."""

    def __init__(self, output: bytes = FAKE_WAV, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.calls: List[bytes] = []

    async def convert(self, data: bytes, scratch: ScratchFiles) -> bytes:
        self.calls.append(data)
        scratch.raw_path.write_bytes(data)
        if self.error:
            raise self.error
        scratch.wav_path.write_bytes(self.output)
        return self.output


class FakeTranscriber(BaseTranscriber):
    def __init__(self, text: str = "the sky is blue", error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None):
        self.text = text
        self.error = error
        self.gate = gate
        self.calls: List[bytes] = []
        self.url_calls: List[str] = []

    async def transcribe(self, wav: bytes) -> str:
        self.calls.append(wav)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.text

    async def transcribe_url(self, audio_url: str) -> str:
        self.url_calls.append(audio_url)
        if self.error:
            raise self.error
        return self.text


class FakeTransformer(BaseTransformer):
    """Streams canned fragments, optionally failing before fragment ``fail_at``."""

    def __init__(self, fragments=("the ", "sky ", "is ", "green"), error: Optional[Exception] = None, fail_at: Optional[int] = None):
        self.fragments = list(fragments)
        self.error = error
        self.fail_at = fail_at
        self.calls: List[str] = []

    def transform(self, text: str) -> TransformationStream:
        self.calls.append(text)

        async def fragments():
            for index, fragment in enumerate(self.fragments):
                if self.error and self.fail_at == index:
                    raise self.error
                yield fragment
            if self.error and self.fail_at is None:
                raise self.error

        return TransformationStream(fragments())


class EventRecorder:
    def __init__(self):
        self.events: List[dict] = []

    async def __call__(self, event: dict) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> List[str]:
        return [event["status"] for event in self.events]


def make_session(tmp_path, frames=()) -> Session:
    session = Session()
    session.scratch = ScratchFiles.for_session(session.id, str(tmp_path))
    for frame in frames:
        session.add_frame(frame)
    return session
