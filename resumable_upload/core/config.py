"""
Configuration settings for the upload server
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storage/uploads.db")

    # Storage
    TEMP_UPLOAD_DIR: str = os.getenv("TEMP_UPLOAD_DIR", "./storage/temp")
    COMPLETED_UPLOAD_DIR: str = os.getenv("COMPLETED_UPLOAD_DIR", "./storage/uploads")
    CONTAINER_EXTENSION: str = os.getenv("CONTAINER_EXTENSION", ".zip")

    # Largest accepted chunk body (10MB)
    MAX_CHUNK_BYTES: int = int(os.getenv("MAX_CHUNK_BYTES", str(10 * 1024 * 1024)))

    # Server
    SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
    SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Application
    APP_TITLE: str = "Resumable Upload API"
    APP_DESCRIPTION: str = "Chunked uploads with resumable sessions and end-to-end integrity checks"
    APP_VERSION: str = "1.0.0"


settings = Settings()
