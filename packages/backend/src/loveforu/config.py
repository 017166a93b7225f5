"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with LOVEFORU_ prefix.
No appsettings files — just env vars (12-factor app style).

Learn: The JWT values must match whatever issues tokens after LINE login;
this service only verifies them.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings

DEFAULT_SIGNING_KEY = "change-me-in-production"


class Settings(BaseSettings):
    """All app configuration. Set via LOVEFORU_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Auth (JWT bearer or cookie)
    jwt_signing_key: str = DEFAULT_SIGNING_KEY
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "loveforu"
    jwt_audience: str = "loveforu-web"
    jwt_expiration_minutes: int = 60
    jwt_leeway_seconds: int = 60  # clock skew tolerance
    auth_cookie_name: str = "loveforu_auth"

    # Chat notifications
    chat_channel_capacity: int = 0  # 0 = unbounded; >0 = drop-and-prune bound
    sse_ping_seconds: int = 15  # keep-alive comment interval on idle streams

    model_config = {"env_prefix": "LOVEFORU_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse to run outside development with the default signing key."""
        if (
            self.environment != "development"
            and self.jwt_signing_key == DEFAULT_SIGNING_KEY
        ):
            raise ValueError(
                "LOVEFORU_JWT_SIGNING_KEY must be set to a secure value in "
                "non-development environments."
            )
        if self.sse_ping_seconds <= 0:
            raise ValueError("LOVEFORU_SSE_PING_SECONDS must be > 0")
        if self.chat_channel_capacity < 0:
            raise ValueError("LOVEFORU_CHAT_CHANNEL_CAPACITY must be >= 0")
        return self


# Singleton — import this everywhere
settings = Settings()
