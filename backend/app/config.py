"""Application configuration with environment variable support.

All settings can be overridden via environment variables prefixed with ``FEEDBACK_``,
or via a ``.env`` file in the project root.

Examples::

    FEEDBACK_PORT=9000 uv run feedback-board start
    FEEDBACK_DATA_DIR=/var/data uv run feedback-board start
    FEEDBACK_LOG_LEVEL=DEBUG uv run feedback-board start
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root: two levels up from this file (backend/app/config.py -> project root)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Feedback board configuration; all values overridable via env vars."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDBACK_",
        env_file=str(_BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:5173"]

    # Paths
    data_dir: Path = _BASE_DIR / "data"

    # Logging
    log_level: str = "INFO"

    # Seed a few example items when the store is empty
    seed_sample_data: bool = True

    # Session cookie lifetime (30 days)
    session_cookie_max_age: int = 30 * 24 * 60 * 60

    @property
    def db_path(self) -> Path:
        return self.data_dir / "feedback.db"

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"


# Singleton instance, import this everywhere
settings = Settings()

BASE_DIR = _BASE_DIR
DATA_DIR = settings.data_dir
DB_PATH = settings.db_path
DATABASE_URL = settings.database_url

API_HOST = settings.host
API_PORT = settings.port
