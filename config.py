"""
Configuration management for MedTrack
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MedTrack"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Document store
    DATABASE_URL: str = "sqlite:///./medtrack.db"
    DATABASE_ECHO: bool = False

    # Notifications
    NOTIFIER_BACKEND: str = "log"  # "log" or "webhook"
    NOTIFIER_WEBHOOK_URL: Optional[str] = None
    NOTIFIER_TIMEOUT_SECONDS: float = 10.0

    # Reminder scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TICK_SECONDS: int = 60
    DAILY_SUMMARY_TIME: str = "21:00"  # tenant-local HH:MM, empty disables

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class EngineConfig:
    """Timing and threshold constants for the reminder engine"""

    # Reminder lifecycle
    ESCALATION_TIMEOUT_MINUTES: int = 30
    SNOOZE_MINUTES: int = 15
    DUE_TOLERANCE_MINUTES: int = 1
    DEDUP_TTL_HOURS: int = 24

    # Inventory
    LOW_STOCK_THRESHOLD: int = 5

    # Activity log
    LOG_RETENTION: int = 1000

    # Tenant defaults
    DEFAULT_TIMEZONE: str = "Asia/Kolkata"
    DEFAULT_ADVANCE_MINUTES: int = 15
    MAX_ADVANCE_MINUTES: int = 60
    DEFAULT_MEAL_TIMES: dict[str, dict[str, str]] = {
        "breakfast": {"start": "07:00", "end": "10:00"},
        "lunch": {"start": "12:00", "end": "14:00"},
        "dinner": {"start": "19:00", "end": "21:00"},
    }


# Document keys persisted per tenant
class DocumentKeys:
    MEDICINES = "medicines"
    SCHEDULES = "schedules"
    SETTINGS = "settings"
    LOGS = "logs"
    REMINDERS = "reminders"


settings = get_settings()
engine_config = EngineConfig()
