import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is meant for local development and tests only. Set DATABASE_URL to a
    PostgreSQL connection string anywhere data has to survive a redeploy.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "trainer.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (local development only): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    store_timeout_seconds: float = Field(default=10.0, validation_alias="STORE_TIMEOUT_SECONDS")

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    llm_provider: str = Field(default="openai", validation_alias="LLM_PROVIDER")
    primary_model: str = Field(default="gpt-4o-mini", validation_alias="PRIMARY_MODEL")
    program_model: str = Field(default="gpt-4o", validation_alias="PROGRAM_MODEL")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    weekly_review_cron: str = Field(default="0 23 * * sun", validation_alias="WEEKLY_REVIEW_CRON")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_store_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be positive")
        return value

    @field_validator("weekly_review_cron")
    @classmethod
    def validate_weekly_review_cron(cls, value: str) -> str:
        """Require a five-field crontab expression."""
        if len(value.split()) != 5:
            raise ValueError(f"WEEKLY_REVIEW_CRON must have 5 fields, got: {value!r}")
        return value


settings = Settings()
