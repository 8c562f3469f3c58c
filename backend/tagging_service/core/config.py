"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    PROJECT_NAME: str = "Tagging Service API"

    # Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "practice_tags"
    # Full async URL, wins over the POSTGRES_* parts (e.g. sqlite+aiosqlite for local runs)
    DATABASE_URL_OVERRIDE: Optional[str] = None
    SQL_ECHO: bool = False

    # Bearer JWT shared with the web frontend
    AUTH_SECRET: str = ""
    AUTH_ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # Suggestions
    SUGGESTION_LIMIT: int = 10
    SUGGESTION_CONTEXT_DAYS: int = 30
    SUGGESTION_CONTEXT_SAMPLE: int = 50

    # Analytics
    ANALYTICS_WINDOW_DAYS: int = 30

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost"]

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL database URL for SQLAlchemy."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Sync PostgreSQL database URL for Alembic migrations."""
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
