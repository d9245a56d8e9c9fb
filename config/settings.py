"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., REDIS_HOST env var → Settings.REDIS_HOST)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

Both processes (API and worker) import `settings` from here.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── PostgreSQL ──────────────────────────────────────────────
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "elearning"
    POSTGRES_PASSWORD: str = "elearning"
    POSTGRES_DB: str = "elearning"

    # ── Redis ───────────────────────────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # ── Enrollment queue ────────────────────────────────────────
    QUEUE_NAME: str = "course-enrollment"
    JOB_MAX_ATTEMPTS: int = 3            # total tries, including the first
    JOB_BACKOFF_BASE: float = 2.0        # seconds; doubles on every retry
    JOB_RETENTION_SECONDS: Optional[float] = 7 * 24 * 3600  # finished jobs; None keeps them forever

    # ── Worker ──────────────────────────────────────────────────
    WORKER_POOL_SIZE: int = 5            # concurrent enrollment attempts
    WORKER_POLL_INTERVAL: float = 0.5    # seconds to wait when the queue is empty
    STALLED_INTERVAL: float = 30.0       # active without heartbeat → stalled

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    RUN_WORKERS_IN_API: bool = False

    @property
    def database_url(self) -> str:
        """Async connection string for FastAPI (uses asyncpg driver)."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def sync_database_url(self) -> str:
        """Sync connection string for worker threads (uses psycopg2 driver)."""
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton, import this everywhere
settings = Settings()
