"""Process bootstrap for the authentication engine.

Loads ``.env`` into the environment, configures structlog and installs the
gettext catalogue. Called once by ``AuthContainer.create`` before any service
logs or raises a translated error.
"""

from typing import Optional

from dotenv import load_dotenv

from src.core.config.settings import Settings, settings as default_settings
from src.core.logging import configure_logging
from src.utils.i18n import setup_i18n

_initialized = False


def initialize_application(config: Optional[Settings] = None, force: bool = False) -> None:
    """Run the one-time setup tasks.

    Repeated calls are no-ops unless ``force`` is set.

    Args:
        config: Settings that choose the log level and renderer.
        force: Re-run even if initialization already happened.
    """
    global _initialized
    if _initialized and not force:
        return

    config = config or default_settings
    load_dotenv(override=False)
    configure_logging(log_level=config.LOG_LEVEL, json_logs=config.LOG_JSON)
    setup_i18n()
    _initialized = True
