"""
Application settings loaded from the environment and an optional .env file.
"""
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """
    Runtime settings. Defaults to a local SQLite database file.
    PostgreSQL URLs are accepted as well (see database.py).
    """
    database_url: str = "sqlite:///./familybudget.db"
    auto_create_tables: bool = True
    cors_allow_origins: str = ""
    frontend_url: str = ""
    api_docs_enabled: bool = False
    bill_reminder_days: int = 3
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def get_cors_origins(self) -> List[str]:
        """
        Determine allowed CORS origins.

        If CORS_ALLOW_ORIGINS is not set, FRONTEND_URL is used.
        """
        origins = [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]
        if origins:
            return origins
        if self.frontend_url:
            return [self.frontend_url]
        return ["http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
