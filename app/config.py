# app/config.py
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./battery.db"
    DB_ECHO: bool = False

    # API configuration
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = ["*"]

    # Identity provider (tokens are issued externally and only verified here)
    AUTH_JWT_SECRET: str = "change-me"
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None

    # Metering
    FREE_MODEL_PREFIXES: List[str] = ["ollama/"]
    USAGE_HISTORY_DAYS: int = 7
    MAX_USAGE_HISTORY_DAYS: int = 365
    PRICING_OVERRIDES_FILE: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache()
def get_settings():
    return Settings()
