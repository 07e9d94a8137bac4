"""
Project-wide configuration.

This module defines the configuration value that is built once at process
start (from defaults, an optional rc file, and a few environment variables)
and then passed explicitly to the drivers, the orchestrator and the
backend factories. Nothing here is read implicitly at call time.

Module Contents:
    DEFAULT_CONFIG_FILE: Name of the rc file looked up in the working directory
    AppConfig: Root configuration value with one dataclass per section
    load_config: Build an AppConfig from defaults + rc file + environment
    save_config: Write an AppConfig back as JSON

Example:
    >>> from i18n_app_translator.config import load_config
    >>> config = load_config()
    >>> config.translation.concurrency
    5
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from i18n_app_translator.errors import ConfigError

DEFAULT_CONFIG_FILE = ".i18n-app-translatorrc"

VECTOR_PROVIDERS = ("memory", "local")
GENERATION_PROVIDERS = ("openai", "deepseek", "anthropic", "mock")
SCHEDULING_MODES = ("window", "pool")


@dataclass
class VectorDBConfig:
    enabled: bool = True
    provider: str = "local"
    path: str = ".i18n-app-translator/index.npz"
    namespace: str = "translations"


@dataclass
class GlossaryConfig:
    enabled: bool = True
    path: str = "glossary.json"


@dataclass
class TranslationConfig:
    """Batch and retrieval settings for the orchestrator."""
    concurrency: int = 5
    show_progress: bool = True
    similar_translations_limit: int = 3
    debug: bool = False
    timeout: float = 60.0
    scheduling: str = "window"


@dataclass
class GenerationConfig:
    """Which generation/embedding backend to build and how to call it.

    The temperature defaults low so repeated runs over the same catalog
    do not oscillate between phrasings.
    """
    provider: str = "openai"
    model: str = "gpt-4o"
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = 0.2
    max_tokens: int = 1024
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    max_retries: int = 3


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_to_file: bool = False
    log_file_path: str = "i18n-app-translator.log"
    log_to_console: bool = True
    timestamp: bool = True


@dataclass
class AppConfig:
    """Root configuration value.

    Construct one per process (or per test) and pass it down.
    """
    vector_db: VectorDBConfig = field(default_factory=VectorDBConfig)
    glossary: GlossaryConfig = field(default_factory=GlossaryConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict:
        """Serialize config for saving; the API key is never written."""
        data = asdict(self)
        data["generation"].pop("api_key", None)
        return data

    def validate(self) -> None:
        """Reject values the rest of the system cannot work with.

        Raises:
            ConfigError: On the first invalid value found
        """
        if self.translation.concurrency < 1:
            raise ConfigError(
                f"translation.concurrency must be >= 1, got {self.translation.concurrency}"
            )
        if self.translation.similar_translations_limit < 0:
            raise ConfigError("translation.similar_translations_limit must be >= 0")
        if self.translation.timeout <= 0:
            raise ConfigError("translation.timeout must be positive")
        if self.translation.scheduling not in SCHEDULING_MODES:
            raise ConfigError(
                f"Unknown scheduling mode: {self.translation.scheduling}. "
                f"Available: {', '.join(SCHEDULING_MODES)}"
            )
        if self.vector_db.provider not in VECTOR_PROVIDERS:
            raise ConfigError(
                f"Unknown vector_db provider: {self.vector_db.provider}. "
                f"Available: {', '.join(VECTOR_PROVIDERS)}"
            )
        for name in ("provider", "embedding_provider"):
            value = getattr(self.generation, name)
            if value not in GENERATION_PROVIDERS:
                raise ConfigError(
                    f"Unknown generation {name}: {value}. "
                    f"Available: {', '.join(GENERATION_PROVIDERS)}"
                )


def _merge_section(section: Any, overrides: Mapping[str, Any]) -> None:
    """Copy known keys from ``overrides`` onto a section dataclass in place."""
    known = {f.name for f in fields(section)}
    for key, value in overrides.items():
        if key in known:
            setattr(section, key, value)


def merge_config(config: AppConfig, overrides: Mapping[str, Any]) -> AppConfig:
    """Deep-merge a (possibly partial) mapping over an AppConfig.

    Unknown sections and keys are ignored so older rc files keep working.
    """
    for section_name, section_overrides in overrides.items():
        section = getattr(config, section_name, None)
        if section is None or not isinstance(section_overrides, Mapping):
            continue
        _merge_section(section, section_overrides)
    return config


def apply_env_overrides(config: AppConfig, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Apply the supported environment variables once, at load time."""
    env = os.environ if environ is None else environ

    if model := env.get("TRANSLATION_LLM"):
        config.generation.model = model
    if embedding_model := env.get("EMBEDDING_LLM"):
        config.generation.embedding_model = embedding_model
    if provider := env.get("I18N_TRANSLATOR_PROVIDER"):
        config.generation.provider = provider
    if env.get("MOCK_MODE", "").lower() == "true":
        config.generation.provider = "mock"
        config.generation.embedding_provider = "mock"
    return config


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Build the application config.

    Args:
        path: Explicit rc file. Defaults to ``.i18n-app-translatorrc`` in the
            working directory; a missing default file is not an error.
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        A validated AppConfig

    Raises:
        ConfigError: If an explicit file is missing or any file is malformed
    """
    config = AppConfig()

    config_path = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_FILE
    if config_path.exists():
        try:
            user_config = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Error loading config file {config_path}: {e}")
        if not isinstance(user_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
        merge_config(config, user_config)
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    apply_env_overrides(config, environ)
    config.validate()
    return config


def save_config(config: AppConfig, path: str | Path = DEFAULT_CONFIG_FILE) -> Path:
    path = Path(path)
    path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    return path
