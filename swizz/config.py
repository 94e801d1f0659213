"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for required variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    groq_api_key: SecretStr = Field(description="Groq API key for the reply model")
    deepgram_api_key: SecretStr = Field(description="Deepgram API key for transcription")
    elevenlabs_api_key: SecretStr = Field(description="ElevenLabs API key for speech synthesis")

    # ==========================================================================
    # Database
    # ==========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/swizz.db",
        description="SQLAlchemy async database URL",
    )
    store_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per call store write before giving up",
    )
    store_retry_delay_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Base delay between call store retries (linear backoff)",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    max_concurrent_calls: int = Field(
        default=10,
        ge=1,
        description="Maximum number of live media streams handled by this process",
    )

    # ==========================================================================
    # Telephony Configuration
    # ==========================================================================
    media_encoding: Literal["mulaw", "linear16"] = Field(
        default="mulaw",
        description="Encoding of media frames on the telephony stream",
    )
    media_sample_rate: int = Field(
        default=8000,
        description="Sample rate of the telephony stream",
    )
    outbound_frame_ms: int = Field(
        default=20,
        description="Duration of each outbound media frame in milliseconds",
    )

    # ==========================================================================
    # Pipeline Configuration
    # ==========================================================================
    frame_threshold: int = Field(
        default=20,
        ge=1,
        description="Number of inbound frames collected before a chunk is processed",
    )
    chunk_queue_size: int = Field(
        default=4,
        ge=1,
        description="Ready chunks allowed to wait behind the running turn",
    )
    transcription_language: str = Field(
        default="en",
        description="Language hint passed to the transcription service",
    )
    deepgram_model: str = Field(default="nova-2", description="Deepgram model")
    groq_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq chat model used for replies",
    )
    llm_max_tokens: int = Field(default=150, description="Reply length cap")
    llm_temperature: float = Field(default=0.7, description="Reply sampling temperature")
    stt_timeout_seconds: float = Field(default=10.0, description="Transcription timeout")
    llm_timeout_seconds: float = Field(default=15.0, description="Reply generation timeout")
    tts_timeout_seconds: float = Field(default=10.0, description="Speech synthesis timeout")

    # ==========================================================================
    # TTS Configuration
    # ==========================================================================
    elevenlabs_voice_id: str = Field(
        default="21m00Tcm4TlvDq8ikWAM",
        description="ElevenLabs voice ID used for the agent",
    )
    elevenlabs_model_id: str = Field(
        default="eleven_monolingual_v1",
        description="ElevenLabs model ID",
    )
    voice_stability: float = Field(default=0.5, description="ElevenLabs voice stability")
    voice_similarity_boost: float = Field(
        default=0.5, description="ElevenLabs voice similarity boost"
    )
    tts_source_sample_rate: int = Field(
        default=16000,
        description="Sample rate requested from ElevenLabs before resampling",
    )

    # ==========================================================================
    # User Alerts
    # ==========================================================================
    notify_webhook_url: str | None = Field(
        default=None,
        description="Webhook URL called when a human representative answers",
    )
    notify_webhook_token: SecretStr | None = Field(
        default=None,
        description="Bearer token for the alert webhook",
    )
    notify_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for the alert webhook request",
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()  # type: ignore[call-arg]  # loads from env
