from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Application
    APP_NAME: str = "College Library"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api/v1/library"

    # Database
    DATABASE_URL: str = "sqlite:///./library.db"
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Circulation
    FINE_PER_DAY: Decimal = Decimal("10")
    DEFAULT_LOAN_DAYS: int = 14
    DUE_SOON_DAYS: int = 3

    # Pagination
    PER_PAGE: int = 15
    MAX_PER_PAGE: int = 100


settings = Settings()
