"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    Editor ids stand in for the narrator role of the chat platform; the
    platform adapter may pass its own role check to the lifecycle manager
    instead.
    """

    # Database
    sqlite_db_path: Path = Path("./data/tagroll.db")

    # Roles
    roll_editor_ids: list[str] = []

    # Pools
    pool_page_size: int = 25

    # Draft sessions
    draft_ttl_seconds: float = 3600.0
    draft_max_entries: int = 500

    # Bookkeeping
    improvement_threshold: int = 3

    # Might modifier range
    might_min: int = -12
    might_max: int = 12

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "TAGROLL_",
    }

    @field_validator("pool_page_size", "draft_max_entries", "improvement_threshold")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be >= 1")
        return v

    @field_validator("draft_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("draft_ttl_seconds must be > 0")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_might_range(self) -> "Settings":
        if self.might_min >= self.might_max:
            raise ValueError(
                f"might_min ({self.might_min}) must be less than "
                f"might_max ({self.might_max})"
            )
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
