"""pydantic-settings based application settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """notesearch application settings.

    All values are loaded from environment variables.
    A .env file in the working directory is also supported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Database ---
    DATABASE_URL: str = "postgresql+asyncpg://notesearch:notesearch@db:5432/notesearch"

    # --- JWT ---
    JWT_SECRET: str = "change-this-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Logging / HTTP ---
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # --- Keyword search ---
    SEARCH_TEXT_CONFIG: str = "english"  # PostgreSQL text search configuration
    SEARCH_CACHE_TTL_MINUTES: int = 60
    SEARCH_INDEX_TIMEOUT_SECONDS: float = 5.0
    SEARCH_SNIPPET_LENGTH: int = 150

    # --- History / analytics retention ---
    SEARCH_SUGGESTION_WINDOW_DAYS: int = 30
    SEARCH_HISTORY_RETENTION_DAYS: int = 90
    SEARCH_HISTORY_KEEP_MIN_USES: int = 3  # frequently reused queries survive retention
    SEARCH_ANALYTICS_RETENTION_DAYS: int = 180
    SEARCH_CLEANUP_ON_STARTUP: bool = True

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()
