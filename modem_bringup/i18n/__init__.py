"""
Internationalization for modem-bringup API messages.
Language comes from ?language= or the Accept-Language header.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "es")
DEFAULT_LANGUAGE = "en"


class I18nManager:
    """Loads <lang>.json message catalogs and formats keys like "modem.no_result"."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or os.path.dirname(os.path.abspath(__file__))
        self.translations: Dict[str, Dict[str, Any]] = {}
        for lang in SUPPORTED_LANGUAGES:
            path = os.path.join(self.directory, f"{lang}.json")
            try:
                with open(path, "r", encoding="utf-8") as f:
                    self.translations[lang] = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading {lang}.json: {e}")

    def language_from_header(self, accept_language: Optional[str]) -> str:
        """'es-ES,es;q=0.9,en;q=0.8' -> 'es'"""
        for lang_range in (accept_language or "").split(","):
            lang = lang_range.split(";")[0].strip().lower().split("-")[0]
            if lang in self.translations:
                return lang
        return DEFAULT_LANGUAGE

    def _lookup(self, key: str, language: str) -> Optional[str]:
        value: Any = self.translations.get(language, {})
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return None
            value = value[part]
        return value if isinstance(value, str) else None

    def translate(self, key: str, language: str = DEFAULT_LANGUAGE, **kwargs) -> str:
        """Translated message; English fallback, then the key itself."""
        message = self._lookup(key, language) or self._lookup(key, DEFAULT_LANGUAGE)
        if message is None:
            return key
        try:
            return message.format(**kwargs) if kwargs else message
        except KeyError:
            return message


_i18n_manager: Optional[I18nManager] = None


def get_i18n_manager() -> I18nManager:
    global _i18n_manager
    if _i18n_manager is None:
        _i18n_manager = I18nManager()
    return _i18n_manager


def translate(key: str, language: str = DEFAULT_LANGUAGE, **kwargs) -> str:
    return get_i18n_manager().translate(key, language, **kwargs)


def get_language_from_request(request) -> str:
    manager = get_i18n_manager()

    language = request.query_params.get("language")
    if language in manager.translations:
        return language

    return manager.language_from_header(request.headers.get("accept-language"))
