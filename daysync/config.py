"""Configuration settings for daysync."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


def get_daysync_home() -> Path:
    """Directory holding daysync's local state."""
    return Path.home() / ".daysync"


class Settings(BaseSettings):
    """Engine settings loaded from environment (``DAYSYNC_*``)."""

    # Timing
    debounce_ms: int = 1000  # Idle interval before a coalesced remote write
    read_deadline_ms: int = 3000  # Server reads during load and retry
    write_deadline_ms: int = 3000  # Remote writes

    # Local cache
    cache_namespace: str = "daysync"
    local_db_path: Path = get_daysync_home() / "cache.db"

    # Remote document store
    backend_url: str | None = None
    auth_token: str | None = None

    # When True, an ignorable load failure with nothing to show is LoadFailed too
    fail_on_unverified_load: bool = False

    log_level: str = "WARNING"

    class Config:
        env_prefix = "DAYSYNC_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def debounce_interval(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def read_deadline(self) -> float:
        return self.read_deadline_ms / 1000.0

    @property
    def write_deadline(self) -> float:
        return self.write_deadline_ms / 1000.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
