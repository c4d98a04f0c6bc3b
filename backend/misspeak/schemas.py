"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Pydantic schemas for API IO models.
"""
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator


class HealthOut(BaseModel):
    status: str
    service: str
    timestamp: str
    uptime: float


class TranscribeRequest(BaseModel):
    audio_url: str = Field(..., min_length=1, max_length=2048)

    @field_validator("audio_url")
    @classmethod
    def validate_audio_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("audio_url must be a valid http(s) URL")
        return value


class TranscribeResponse(BaseModel):
    text: str
