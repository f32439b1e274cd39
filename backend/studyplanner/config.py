"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from studyplanner.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "study-planner"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    AUTH_REDIRECT_URL: str = "http://localhost:5173/auth/callback"

    # ── Session ──────────────────────────────────────────
    SESSION_STORAGE_PATH: str = ".study-planner/session.json"
    SESSION_KEY_PREFIX: str = "supabase.auth"
    TOKEN_EXPIRY_SKEW_SECONDS: int = 30  # clock-skew buffer for access tokens

    # ── Data loading ─────────────────────────────────────
    DATA_LOAD_TIMEOUT_SECONDS: float = 10.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton).

    Raises:
        ConfigurationError: If the Supabase endpoint or key is missing.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            "Missing Supabase configuration",
            detail=f"Check environment variables: {', '.join(missing)}",
        ) from e

    if not settings.SUPABASE_URL.strip() or not settings.SUPABASE_KEY.strip():
        raise ConfigurationError(
            "Missing Supabase configuration",
            detail="SUPABASE_URL and SUPABASE_KEY must not be empty",
        )
    return settings
