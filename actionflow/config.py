"""
Configuration settings for Actionflow.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "Actionflow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Execution engine
    RETRY_BASE_DELAY: float = 1.0  # Seconds, multiplied by the retry number
    MAX_NODE_VISITS: int = 1000  # Per run; bounds cyclic graphs

    # HTTP request action
    HTTP_MOCK_REQUESTS: bool = True
    HTTP_TIMEOUT: float = 30.0

    # Generation provider (Gemini)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL: str = "gemini-3-flash-preview"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
