from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Any, List, Literal
import os
import json


class ConfigError(Exception):
    """Raised when required provider configuration is missing."""


class Settings(BaseSettings):
    PROJECT_NAME: str = "Musync API"
    DEBUG: bool = False
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Session cookie identifying the caller's auth sessions
    SESSION_COOKIE_NAME: str = "musync_session"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"
    # Sessions that never link a provider are dropped after this much inactivity
    SESSION_PENDING_TTL_SECONDS: int = 600
    SESSION_MAX_COUNT: int = 10000

    # Spotify OAuth + Web API
    SPOTIFY_CLIENT_ID: str = ""
    SPOTIFY_CLIENT_SECRET: str = ""
    SPOTIFY_REDIRECT_URI: str = ""
    SPOTIFY_AUTH_URL: str = "https://accounts.spotify.com/authorize"
    SPOTIFY_TOKEN_URL: str = "https://accounts.spotify.com/api/token"
    SPOTIFY_API_BASE_URL: str = "https://api.spotify.com/v1"

    # YouTube Music (Google OAuth + YouTube Data API v3)
    YOUTUBE_CLIENT_ID: str = ""
    YOUTUBE_CLIENT_SECRET: str = ""
    YOUTUBE_REDIRECT_URI: str = ""
    YOUTUBE_AUTH_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
    YOUTUBE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"

    # Outbound provider calls
    PROVIDER_HTTP_TIMEOUT_SECONDS: float = 10.0
    # Upper bound for one API request, refresh and retry included
    PROVIDER_REQUEST_DEADLINE_SECONDS: float = 30.0
    TOKEN_EXPIRY_SKEW_SECONDS: int = 60
    PROACTIVE_TOKEN_REFRESH: bool = True

    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(__file__), "../../../.env"),
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator('ALLOWED_ORIGINS', mode='before')
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse allowed origins from JSON or a comma-delimited string."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except (json.JSONDecodeError, TypeError):
                # If not valid JSON, try splitting by comma
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('SESSION_COOKIE_SAMESITE', mode='before')
    @classmethod
    def validate_cookie_samesite(cls, v: Any) -> Literal["lax", "strict", "none"]:
        """Normalize and validate the cookie samesite setting."""
        if isinstance(v, str):
            normalized = v.lower()
            if normalized in {"lax", "strict", "none"}:
                return normalized  # type: ignore[return-value]
        raise ValueError("SESSION_COOKIE_SAMESITE must be one of: lax, strict, none")

    @field_validator('PROVIDER_HTTP_TIMEOUT_SECONDS', 'PROVIDER_REQUEST_DEADLINE_SECONDS')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Outbound calls must always carry a finite, positive timeout."""
        if v <= 0:
            raise ValueError("Provider timeouts must be positive")
        return v

    @field_validator('SESSION_PENDING_TTL_SECONDS', 'SESSION_MAX_COUNT')
    @classmethod
    def validate_session_limits(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Session limits must be positive")
        return v

    def require_provider_settings(self) -> None:
        """Fail fast when any provider is missing client credentials."""
        required = {
            "Spotify": (self.SPOTIFY_CLIENT_ID, self.SPOTIFY_CLIENT_SECRET, self.SPOTIFY_REDIRECT_URI),
            "YouTube Music": (self.YOUTUBE_CLIENT_ID, self.YOUTUBE_CLIENT_SECRET, self.YOUTUBE_REDIRECT_URI),
        }
        for provider_name, values in required.items():
            if not all(value.strip() for value in values):
                raise ConfigError(f"Missing required {provider_name} environment variables")


settings = Settings()
