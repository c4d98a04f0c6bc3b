"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Application configuration powered by environment variables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Centralized configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env", "../.env", "../../.env"), env_prefix="", case_sensitive=False, extra="ignore")

    app_name: str = "misspeak"
    port: int = 3001
    allowed_origins: str = "*"

    replicate_api_token: str = ""
    replicate_base_url: str = "https://api.replicate.com/v1"
    prediction_poll_interval_seconds: float = 1.0

    # Community models need a pinned version; only official models accept "owner/name".
    transcription_model: str = "openai/whisper:8099696689d249cf8b122d833c36ac3f75505c666a395ca40ef26f68e7d3d16e"
    transcription_language: str = "auto"
    transcription_timeout_seconds: float = 120.0

    transformation_model: str = "meta/meta-llama-3-8b-instruct"
    transformation_max_tokens: int = 512
    transformation_temperature: float = 0.7
    transformation_timeout_seconds: float = 60.0

    ffmpeg_binary: str = "ffmpeg"
    transcode_timeout_seconds: float = 30.0
    scratch_dir: Optional[str] = None

    log_level: str = "info"
    log_file: Optional[str] = None

settings = Settings()
