"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Alumni Chat"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str

    # Redis
    redis_url: str

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Message sending limits (per user)
    message_rate_limit: int = 60
    message_rate_window: int = 60  # seconds
    max_message_length: int = 5000

    # Real-time gateway
    ws_token_query_param: str = "token"

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
