"""
Application configuration: environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # SQLite file holding the offline grade cache
    DATABASE = os.environ.get("DATABASE_URL", str(BASE_DIR / "grade_tracker.db"))

    # Remote CMS (authoritative daily grades)
    CMS_API_URL = os.environ.get("CMS_API_URL", "http://localhost:1337/api")
    CMS_TIMEOUT = float(os.environ.get("CMS_TIMEOUT", "10"))

    # Offline cache: "sqlite" (default, durable), "redis" or "memory"
    LOCAL_CACHE_BACKEND = os.environ.get("LOCAL_CACHE_BACKEND", "sqlite")
    REDIS_URL = os.environ.get("REDIS_URL", "")
    REDIS_KEY_PREFIX = os.environ.get("REDIS_KEY_PREFIX", "gradetracker:")

    # Caller-side retry for CMS calls (1 = single attempt, no retry)
    SYNC_RETRY_ATTEMPTS = int(os.environ.get("SYNC_RETRY_ATTEMPTS", "1"))
    SYNC_RETRY_WAIT_MIN = float(os.environ.get("SYNC_RETRY_WAIT_MIN", "0.5"))
    SYNC_RETRY_WAIT_MAX = float(os.environ.get("SYNC_RETRY_WAIT_MAX", "8"))

    # IANA zone used to decide what "today" is for streaks and time ranges
    DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if not cls.CMS_API_URL or "localhost" in cls.CMS_API_URL:
            errors.append("CMS_API_URL must point at the production CMS.")

        if cls.LOCAL_CACHE_BACKEND == "memory":
            warnings.warn("LOCAL_CACHE_BACKEND=memory: cached grades will not survive a restart.")

        if cls.LOCAL_CACHE_BACKEND == "redis" and not cls.REDIS_URL:
            errors.append("REDIS_URL is required when LOCAL_CACHE_BACKEND=redis.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    LOCAL_CACHE_BACKEND = "memory"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
