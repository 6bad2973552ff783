"""Main application settings and configuration management.

This module composes all the settings from the different modules
(app, database, redis, auth) into a single, accessible `Settings` class.

It loads settings from environment variables and .env files, validates them,
and provides a single `settings` object for use throughout the package.

Environment Support:
- Development: Uses .env
- Test: Uses .env.test when present
- Staging: Uses .env.staging, Redis/Postgres passwords required
- Production: Uses .env.production, Redis/Postgres passwords required
"""

import logging
import os
from pathlib import Path

from pydantic_settings import SettingsConfigDict

from .app import AppSettings
from .auth import AuthSettings
from .database import DatabaseSettings
from .redis import RedisSettings

logger = logging.getLogger(__name__)
logging.getLogger("passlib").setLevel(logging.ERROR)


class Settings(AppSettings, DatabaseSettings, RedisSettings, AuthSettings):
    """The main settings class that aggregates all configurations.

    It inherits from all the specialized settings classes, providing a unified
    interface to all configuration parameters.

    Usage:
        - Access settings via the singleton instance `settings`, or build a fresh
          instance with `create_settings()` and hand it to the DI container.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    def validate_required_fields(self) -> None:
        """Validates that secrets required outside development are present.

        Raises:
            ValueError: If a password is missing in staging or production.
        """
        if self.APP_ENV not in ("staging", "production"):
            logger.info("Running in %s environment; secret checks relaxed.", self.APP_ENV)
            return

        missing_fields = [
            field
            for field in ("POSTGRES_PASSWORD", "REDIS_PASSWORD")
            if not getattr(self, field).get_secret_value()
        ]
        if missing_fields:
            error_msg = f"Missing required environment variables: {', '.join(missing_fields)}"
            logger.error(error_msg)
            raise ValueError(error_msg)
        logger.info("All required environment variables are set.")


def create_settings() -> Settings:
    """Create settings instance with environment-specific configuration.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")

    env_files = {
        "development": ".env",
        "test": ".env.test",
        "staging": ".env.staging",
        "production": ".env.production",
    }

    env_file = env_files.get(env, ".env")

    if env != "development" and Path(env_file).exists():
        logger.info(f"Loading environment configuration from {env_file}")
        settings_instance = Settings(_env_file=env_file)
    elif Path(".env").exists():
        logger.info(f"Loading environment configuration from .env (environment: {env})")
        settings_instance = Settings()
    else:
        logger.info(f"No .env file found, using environment variables only (environment: {env})")
        settings_instance = Settings()

    settings_instance.validate_required_fields()
    return settings_instance


# Singleton used by modules that are not handed an explicit settings instance.
settings = create_settings()
