"""
Ideathon Hub – Application configuration.
Reads environment variables from a .env file via pydantic-settings.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── App ──
    APP_NAME: str = "Ideathon Hub"
    DEBUG: bool = True

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./ideathon.db"

    # ── JWT ──
    SECRET_KEY: str = "change-me-to-a-random-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── OAuth (Google) ──
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # ── Admins (comma separated e-mails) ──
    ADMIN_EMAILS: str = ""

    # ── Domain tagging ──
    DOMAIN_MAP_PATH: str = "app/data/domains.json"

    # ── Teams ──
    DEFAULT_TEAM_SIZE: int = 5
    ENFORCE_SUBMISSION_DEADLINE: bool = True

    # ── Store retries ──
    STORE_MAX_RETRIES: int = 3
    STORE_RETRY_BASE_DELAY: float = 0.1

    # ── Live events (SSE) ──
    SSE_QUEUE_SIZE: int = 100
    SSE_KEEPALIVE_SECONDS: float = 15.0

    @property
    def admin_emails(self) -> List[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]


settings = Settings()
