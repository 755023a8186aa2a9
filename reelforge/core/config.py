"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Every setting has a default so the service starts without any environment.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Reelforge Video Converter"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 4000

    # Project storage
    STORAGE_ROOT: str = "./db/input"
    MEDIA_URL_PREFIX: str = "/media/input"

    # Uploads
    MAX_UPLOAD_SIZE: int = 1024 * 1024 * 1024  # 1 GiB per file
    MAX_UPLOAD_FILES: int = 10
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024

    # External tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    FFMPEG_TIMEOUT_SECONDS: float = 3600.0
    FFPROBE_TIMEOUT_SECONDS: float = 30.0

    # Conversion profiles (JSON file replacing the built-in table)
    PROFILES_FILE: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # CORS
    CORS_ORIGINS: list[str] = []

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
