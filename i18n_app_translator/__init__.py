"""
i18n-app-translator: incremental localization of key/value translation catalogs.

Translates missing catalog entries and reviews outdated ones with a
language model, constrained by a glossary and guided by a similarity
index of earlier translations.
"""

__version__ = "0.1.0"

from i18n_app_translator.config import AppConfig, load_config
from i18n_app_translator.models import DiffResult, Entry, TranslationResult
from i18n_app_translator.orchestrator import TranslateOptions, Translator
from i18n_app_translator.pipeline import RunReport, review_catalog, translate_catalog

__all__ = [
    "AppConfig",
    "DiffResult",
    "Entry",
    "RunReport",
    "TranslateOptions",
    "TranslationResult",
    "Translator",
    "load_config",
    "review_catalog",
    "translate_catalog",
]
