from pydantic_settings import BaseSettings
from typing import Optional, List
from pathlib import Path

# Find .env file - check tontine/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
PACKAGE_ENV = BASE_DIR / "tontine" / ".env"
ROOT_ENV = BASE_DIR / ".env"

env_file = str(PACKAGE_ENV) if PACKAGE_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./tontine.db"

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    REPLY_TO_EMAIL: Optional[str] = None

    # Reminders
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_MINUTES: int = 60
    FIRST_REMINDER_DAYS_BEFORE: int = 3
    SECOND_REMINDER_DAYS_BEFORE: int = 1

    # Application
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
LOGS_DIR = BASE_DIR / "logs"
