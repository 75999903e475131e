"""Configuration management for Squadron League."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _sanitize_secret(value: str) -> str:
    """Remove BOM characters and whitespace from secrets.

    Secrets copied from files saved by some editors start with a BOM, which
    breaks HTTP headers built from them.
    """
    if not value:
        return value
    return value.lstrip("\ufeff").strip()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_path: Path = Path("./data/squadron_league.db")

    # Roster and reputation rules
    invitation_window_minutes: int = 120
    initial_fair_racing_score: int = 85

    # Timing system
    race_results_url: str = ""
    race_results_api_key: str = ""
    request_timeout: int = 30

    @field_validator("race_results_api_key", "race_results_url", mode="after")
    @classmethod
    def sanitize_secrets(cls, value: str) -> str:
        """Remove BOM and whitespace from secret values."""
        return _sanitize_secret(value)

    @field_validator("invitation_window_minutes", "request_timeout", mode="after")
    @classmethod
    def positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("initial_fair_racing_score", mode="after")
    @classmethod
    def score_in_range(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("must be between 0 and 100")
        return value

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Path | None = None
    debug: bool = False

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
