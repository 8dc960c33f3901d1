"""
Application configuration
"""
import tempfile
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "GitVerse"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_FORMAT: str = "text"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "gitverse"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Scratch clones
    SCRATCH_ROOT: Path = Path(tempfile.gettempdir()) / "gitverse"
    STALE_SCRATCH_MAX_AGE_HOURS: int = 6

    # Git extraction
    CLONE_DEPTH: int = 1000
    COMMIT_LIMIT: int = 500
    FILE_BATCH_SIZE: int = 500
    GIT_TIMEOUT: int = 300
    CLONE_TIMEOUT: int = 900

    # Analysis runs
    ANALYSIS_LOCK_TTL: int = 3600
    ANALYSIS_SOFT_TIME_LIMIT: int = 3300
    ANALYSIS_TIME_LIMIT: int = 3600
    STALE_ANALYSIS_MAX_AGE_HOURS: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
