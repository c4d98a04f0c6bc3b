"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Outbound WebSocket frames sent to the capture client.
"""
from typing import Optional

PROCESSING_MESSAGE = "Converting audio..."
TRANSCRIBING_MESSAGE = "Transcribing audio..."
MISLEADING_MESSAGE = "Creating misleading version..."


def status_event(status: str, message: str, original: Optional[str] = None) -> dict:
    """Stage announcement: processing, transcribing or misleading."""
    event = {"status": status, "message": message}
    if original is not None:
        event["original"] = original
    return event


def streaming_event(chunk: str, misleading: str) -> dict:
    return {"status": "streaming", "chunk": chunk, "misleading": misleading}


def complete_event(original: str, misleading: str) -> dict:
    return {"status": "complete", "original": original, "misleading": misleading}


def error_event(error: str) -> dict:
    return {"status": "error", "error": error}


def is_terminal(event: dict) -> bool:
    return event.get("status") in {"complete", "error"}
