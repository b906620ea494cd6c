"""Application configuration for qt-datagen."""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment (``QT_DATAGEN_*``) or ``.env``."""

    # Generation
    default_dialect: str = "mysql"
    default_row_count: int = 10
    seed: Optional[int] = None
    preserve_ids: bool = False
    max_string_length: int = 255

    # Retry loop
    max_attempts: int = 5
    min_pass_rate: float = 60.0
    retry_backoff_ms: int = 100
    attempt_deadline_seconds: float = 0.0

    # Optional DuckDB round trip after generation
    live_validation: bool = False

    # Logging
    log_level: str = "WARNING"

    class Config:
        env_prefix = "QT_DATAGEN_"
        env_file = ".env"

    @property
    def has_deadline(self) -> bool:
        return self.attempt_deadline_seconds > 0

    def retry_policy(self) -> Dict[str, Any]:
        """Keyword arguments for RetryOrchestrator."""
        return {
            "max_attempts": self.max_attempts,
            "min_pass_rate": self.min_pass_rate,
            "backoff_ms": self.retry_backoff_ms,
            "deadline_seconds": self.attempt_deadline_seconds if self.has_deadline else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
