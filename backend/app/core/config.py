"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Anthropic API (only needed for AI insights; matching works without it)
    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "claude-3-haiku-20240307"
    LLM_MAX_TOKENS: int = 2000
    LLM_TIMEOUT_SECONDS: Optional[float] = None  # SDK default when unset

    # Award catalog (JSON list of awards); bundled sample catalog when empty
    AWARD_CATALOG_PATH: str = ""

    # Number of top matches analyzed by the batch action
    BATCH_TOP_N: int = 5

    # Per-client limit on AI-backed endpoints
    ANALYSIS_RATE_LIMIT: str = "30/minute"
    SESSION_RATE_LIMIT: str = "20/minute"

    # In-memory matching sessions kept before the least recently used is evicted
    MAX_SESSIONS: int = 1000

    # Application
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:3001,http://localhost:5173"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        # In production, filter out localhost origins
        if not self.DEBUG:
            origins = [origin for origin in origins if not origin.startswith("http://localhost")]
        return origins

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra environment variables


settings = Settings()
