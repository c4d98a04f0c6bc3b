"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Error taxonomy for capture sessions and the hosted engines behind them.
"""
from typing import Optional


class PipelineError(Exception):
    """A stage failure that ends a session in the Failed state."""

    reason = "pipeline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoAudioCaptured(PipelineError):
    reason = "no_audio"

    def __init__(self, message: str = "No audio data received"):
        super().__init__(message)


class ConversionFailed(PipelineError):
    reason = "conversion_error"

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class TranscriptionFailed(PipelineError):
    reason = "transcription_error"


class TransformationFailed(PipelineError):
    """Raised when text generation fails; keeps whatever was streamed before the failure."""

    reason = "transformation_error"

    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(message)
        self.partial_text = partial_text


class TransportFailure(Exception):
    """Connection-level failure. Never reported to the client."""


class RemoteEngineError(Exception):
    """A hosted model call did not produce a usable result."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidTransition(RuntimeError):
    """A session was asked to move backwards or to revisit a state."""
