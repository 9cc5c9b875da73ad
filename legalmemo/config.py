"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Legal Memo Pipeline"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database (Turso)
    turso_database_url: str | None = Field(default=None)
    turso_auth_token: str | None = Field(default=None)

    # Anthropic (speaker attribution and summaries)
    anthropic_api_key: str | None = Field(default=None)
    anthropic_model: str = Field(default="claude-sonnet-4-5")

    # AssemblyAI (streaming and batch speech-to-text)
    assemblyai_api_key: str | None = Field(default=None)
    assemblyai_base_url: str = Field(default="https://api.assemblyai.com")
    assemblyai_streaming_url: str = Field(
        default="wss://streaming.assemblyai.com/v3/ws"
    )
    assemblyai_token_url: str = Field(
        default="https://streaming.assemblyai.com/v3/token"
    )

    # Live streaming
    streaming_sample_rate: int = Field(default=16000)
    streaming_connect_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Seconds to wait for the Begin message after opening the socket",
    )
    streaming_terminate_wait_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to wait for Termination after sending Terminate",
    )
    streaming_token_ttl_seconds: int = Field(default=600, ge=1)
    turn_merge_gap_ms: int = Field(default=2000, ge=0)

    # Audio capture and archive
    audio_frame_ms: int = Field(default=100, gt=0)
    audio_storage_root: str = Field(default="data/meeting-audio")
    upload_retry_attempts: int = Field(default=5, ge=1)
    upload_retry_min_wait: float = Field(default=4.0, ge=0)
    upload_retry_max_wait: float = Field(default=60.0, ge=0)

    # MP3 conversion
    ffmpeg_path: str = Field(default="ffmpeg")
    mp3_bitrate: str = Field(default="64k")
    conversion_timeout_seconds: float = Field(default=300.0, gt=0)

    # Batch transcription
    stt_speaker_labels: bool = Field(
        default=True,
        description="Request diarized utterances from the batch transcription call",
    )
    stt_language_code: str = Field(default="en")
    stt_poll_interval_seconds: float = Field(default=5.0, ge=0)
    stt_max_poll_attempts: int = Field(default=120, ge=1)

    # Pipeline recovery
    recovery_scan_minutes: int = Field(default=5, ge=1)
    recovery_stale_after_minutes: int = Field(default=15, ge=1)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
