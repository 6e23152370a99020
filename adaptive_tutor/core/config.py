"""Application settings and configuration."""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENV: Literal["dev", "staging", "prod", "test"] = Field(default="dev")
    PROJECT_NAME: str = Field(default="Adaptive Tutor Engine")

    # Database (only used by the SQLAlchemy stores)
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./adaptive_tutor.db")
    DATABASE_ECHO: bool = Field(default=False)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "structured"] = Field(default="json")

    # Decision audit
    AUDIT_ENABLED: bool = Field(default=True)

    # Selection reproducibility
    SELECTION_SEED_SALT: str = Field(default="adaptive-tutor")

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the log level so `info` and `INFO` both work."""
        return v.upper()


settings = Settings()
