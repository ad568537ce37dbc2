"""
Configuration management for the admin console.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Hostel Admin Console"
    API_VERSION: str = "0.1.0"
    API_DESCRIPTION: str = "Admin console for hostel branches, gallery images and enquiries"

    # CORS Configuration
    # Origins of the admin frontend during local development
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3001",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3001",
    ]

    # Hostel backend the console talks to
    BACKEND_URL: str = "http://localhost:3000"
    BACKEND_TIMEOUT_SECONDS: float = 30.0

    LOG_LEVEL: str = "INFO"

    # Image uploads (thumbnails and gallery images)
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5MB
    CONVERT_UPLOADS_TO_WEBP: bool = True
    PREVIEW_MAX_DIMENSION: int = 480

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
