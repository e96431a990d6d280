"""Configuration management for the face access control service."""

from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"

    # Supabase configuration
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = "local-development-anon-key"

    # Matching settings
    match_threshold: float = 0.6
    recent_events_limit: int = 50

    # Rate limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # Observability
    otlp_endpoint: Optional[str] = None
    enable_console_export: bool = False

    # Logging configuration
    log_level: str = "INFO"

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL environment variable is required')
        if not v.startswith(('http://', 'https://')):
            raise ValueError('SUPABASE_URL must be an HTTP/HTTPS URL')
        return v

    @field_validator('supabase_anon_key')
    @classmethod
    def validate_supabase_anon_key(cls, v):
        if not v:
            raise ValueError('SUPABASE_ANON_KEY environment variable is required')
        return v

    @field_validator('match_threshold')
    @classmethod
    def validate_match_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError('MATCH_THRESHOLD must be between 0.0 and 1.0')
        return v

    @field_validator('recent_events_limit', 'rate_limit_requests', 'rate_limit_window_seconds')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('Limits must be positive integers')
        return v


# Global settings instance
settings = Settings()
