"""
Configuration module for the Ask AI Bridge application.
Handles environment variables and application settings.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration class."""

    # API Keys
    API_KEY: str = os.getenv("API_KEY", "")

    # Application Settings
    APP_TITLE: str = "Ask AI Bridge"
    SETTINGS_PATH: str = os.getenv("ASK_AI_SETTINGS_PATH", "data.json")

    # Model used when neither the endpoint nor its policy names one
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "moonshot-v1-32k")

    # Lines taken before and after the cursor line as template context
    CONTEXT_RADIUS: int = int(os.getenv("CONTEXT_RADIUS", "2"))

    # Sessions idle longer than this (seconds) are dropped
    SESSION_TTL: float = float(os.getenv("SESSION_TTL", "3600"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Timeouts (in seconds)
    CONNECT_TIMEOUT: float = 10.0
    READ_TIMEOUT: float = 120.0
    WRITE_TIMEOUT: float = 30.0
    POOL_TIMEOUT: float = 10.0

    # Connection pool
    MAX_CONNECTIONS: int = 10
    MAX_KEEPALIVE_CONNECTIONS: int = 5

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and print warnings for missing settings."""
        if not cls.API_KEY:
            print("   WARNING: API_KEY not found in .env file")
            print("   Every request to the bridge will be rejected until it is set.")


Config.validate()
