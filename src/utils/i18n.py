from __future__ import annotations

"""
Internationalization (i18n) utility module for user-facing error messages.

This module provides functionality for:
- Loading message catalogues for the supported languages
- Translating message keys with a fallback to the default language
- Logging of translation-related events

The module uses Python's built-in gettext for translation management. Compiled
*.mo* files are optional: the *.po* sources are parsed at setup time and used as
a secondary lookup so that freshly added messages resolve without a Babel
compilation step.
"""

import gettext
import os
from typing import Dict, Optional

from src.core.config.settings import settings
from src.core.logging import logger

_translations: Dict[str, gettext.NullTranslations] = {}
_fallback_catalogs: Dict[str, Dict[str, str]] = {}

LOCALES_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "locales"))


def setup_i18n(locales_path: str = LOCALES_PATH) -> None:
    """
    Initialize the internationalization system by loading translations.

    Args:
        locales_path: Directory holding ``<lang>/LC_MESSAGES/messages.po``.

    Raises:
        FileNotFoundError: If the locales directory is not found.
    """
    if not os.path.exists(locales_path):
        raise FileNotFoundError(f"Locales directory not found: {locales_path}")

    for lang in settings.SUPPORTED_LANGUAGES:
        _translations[lang] = gettext.translation(
            domain="messages",
            localedir=locales_path,
            languages=[lang],
            fallback=True,
        )

        po_path = os.path.join(locales_path, lang, "LC_MESSAGES", "messages.po")
        catalog: Dict[str, str] = {}
        if os.path.exists(po_path):
            with open(po_path, "r", encoding="utf-8") as po_file:
                current_msgid: Optional[str] = None
                for raw_line in po_file:
                    line = raw_line.strip()
                    if line.startswith("msgid "):
                        current_msgid = line[6:].strip().strip('"')
                    elif line.startswith("msgstr ") and current_msgid is not None:
                        msgstr = line[7:].strip().strip('"')
                        catalog[current_msgid] = msgstr or current_msgid
                        current_msgid = None

        _fallback_catalogs[lang] = catalog
        logger.debug("i18n_initialized", language=lang, entries=len(catalog))

    logger.debug("i18n_setup_complete", default_locale=settings.DEFAULT_LANGUAGE)


def get_translated_message(key: str, locale: str | None = None, **params: object) -> str:
    """
    Retrieve a translated message for the given key and locale.

    Falls back to the default language, then to the key itself. Placeholders in
    the catalogue entry (``{length}``) are filled from ``params``.

    Args:
        key: The message key to translate.
        locale: The target language code (defaults to DEFAULT_LANGUAGE).
        **params: Values for ``str.format`` placeholders.

    Returns:
        The translated message or the original key if translation fails.
    """
    if not _translations:
        setup_i18n()

    locale = locale or settings.DEFAULT_LANGUAGE
    if locale not in _translations:
        logger.warning(
            "unsupported_locale_requested",
            requested_locale=locale,
            fallback_locale=settings.DEFAULT_LANGUAGE,
        )
        locale = settings.DEFAULT_LANGUAGE

    translation = _translations.get(locale)
    if translation is None:
        logger.error("translation_missing_for_locale", locale=locale)
        return key

    translated = translation.gettext(key)
    if translated == key:
        translated = _fallback_catalogs.get(locale, {}).get(key, key)
        if translated == key:
            logger.warning("translation_key_not_found", key=key, locale=locale)

    if params:
        translated = translated.format(**params)
    return translated
