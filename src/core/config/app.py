"""
Application-specific settings.
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Defines process-wide settings like project name, environment and logging.

    Security Note:
        - LOG_JSON should stay enabled outside development so log shippers can
          parse events without scraping free text.
    """
    PROJECT_NAME: str = "minisocial-auth"
    VERSION: str = "0.1.0"
    APP_ENV: str = Field(
        default="development",
        pattern="^(development|test|staging|production)$",
    )
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    DEFAULT_LANGUAGE: str = "en"
    SUPPORTED_LANGUAGES: list[str] = ["en"]

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        """
        Upper-cases the configured log level and rejects unknown names.

        Args:
            value: Raw log level from the environment.

        Returns:
            Normalized log level name.
        """
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {value}")
        return level
