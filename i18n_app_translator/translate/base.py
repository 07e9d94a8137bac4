"""
Generation gateway interface and factories.

This module defines:
- GenerationBackend: the contract every generation provider implements
  (translate, review, and the embedding capability used by the
  similarity index)
- MockGenerator: deterministic offline backend for tests and MOCK_MODE
- create_generator / create_embedder: build one backend from explicit
  configuration, once per run

Design Philosophy:
- Backends are stateless apart from their client; all retrieval context
  arrives as arguments
- Backends raise GenerationError; the batch layer isolates it per entry
- Exactly one place (the embedder) knows which embedding model is active
"""

from __future__ import annotations

import hashlib
import logging
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Mapping, Optional, Sequence

from i18n_app_translator.errors import ConfigError, GenerationError
from i18n_app_translator.models import SimilarTranslation
from i18n_app_translator.translate.prompting import NO_CHANGES, ReviewOutcome

if TYPE_CHECKING:
    from i18n_app_translator.config import GenerationConfig
    from i18n_app_translator.keys import KeyManager

logger = logging.getLogger(__name__)


class GenerationBackend(ABC):
    """Abstract base class for all generation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name (e.g., 'openai-gpt-4o', 'mock')."""
        pass

    @abstractmethod
    async def translate(
        self,
        source_text: str,
        target_language: str,
        context: Optional[str] = None,
        similar: Optional[Sequence[SimilarTranslation]] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Translate one string.

        Args:
            source_text: Text to translate
            target_language: Target language code
            context: Usage hint for the string
            similar: Prior translations to use as few-shot examples
            glossary: Term -> translation pairs that must be respected

        Returns:
            The translation, trimmed

        Raises:
            GenerationError: On backend, network or auth failure
        """
        pass

    @abstractmethod
    async def review(
        self,
        source_text: str,
        existing_translation: str,
        target_language: str,
        context: Optional[str] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> ReviewOutcome:
        """Critique an existing translation and optionally rewrite it."""
        pass

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for ``text``."""
        raise GenerationError(f"{self.name} does not provide embeddings")

    async def close(self) -> None:
        pass


class MockGenerator(GenerationBackend):
    """Offline backend.

    Translations are ``[<lang>] <text>``; reviews keep the translation;
    embeddings are hashed character trigrams, so identical texts embed
    identically and similar texts land close together.
    """

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions

    @property
    def name(self) -> str:
        return "mock"

    async def translate(
        self,
        source_text: str,
        target_language: str,
        context: Optional[str] = None,
        similar: Optional[Sequence[SimilarTranslation]] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> str:
        logger.debug("[MOCK] Translating %r to %s", source_text, target_language)
        return f"[{target_language}] {source_text}"

    async def review(
        self,
        source_text: str,
        existing_translation: str,
        target_language: str,
        context: Optional[str] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> ReviewOutcome:
        return ReviewOutcome(improved=existing_translation, changes=NO_CHANGES)

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        padded = f"  {text.lower()}  "
        for i in range(len(padded) - 2):
            digest = hashlib.md5(padded[i:i + 3].encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "little") % self.dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector


def create_generator(
    config: "GenerationConfig",
    key_manager: "KeyManager | None" = None,
    debug: bool = False,
    provider: Optional[str] = None,
) -> GenerationBackend:
    """Factory function to create a generation backend from configuration.

    Args:
        config: Generation section of the application config
        key_manager: Where to look up API keys (env, keyring, key file)
        debug: Log every prompt at debug level
        provider: Override ``config.provider`` (used for the embedder)

    Returns:
        Configured GenerationBackend

    Raises:
        ConfigError: Unknown provider or missing API key
    """
    provider = (provider or config.provider).lower()

    if provider == "mock":
        return MockGenerator()

    if key_manager is None:
        from i18n_app_translator.keys import KeyManager
        key_manager = KeyManager()

    api_key = config.api_key or key_manager.get_key(provider)
    if not api_key:
        raise ConfigError(
            f"{provider} API key required. Set {key_manager.env_var(provider)} "
            f"or store one with: i18n-app-translator keys set {provider}"
        )

    if provider == "openai":
        from i18n_app_translator.translate.llm import OpenAIGenerator
        return OpenAIGenerator(config, api_key=api_key, debug=debug)

    if provider == "deepseek":
        from i18n_app_translator.translate.llm import DeepSeekGenerator
        return DeepSeekGenerator(config, api_key=api_key, debug=debug)

    if provider == "anthropic":
        from i18n_app_translator.translate.llm import AnthropicGenerator
        return AnthropicGenerator(config, api_key=api_key, debug=debug)

    raise ConfigError(
        f"Unknown generation provider: {provider}. "
        "Available providers: openai, deepseek, anthropic, mock"
    )


def create_embedder(
    config: "GenerationConfig",
    generator: Optional[GenerationBackend] = None,
    key_manager: "KeyManager | None" = None,
) -> GenerationBackend:
    """Return the backend that provides embeddings.

    Reuses ``generator`` when it is the configured embedding provider so
    only one client exists per run.
    """
    if generator is not None and config.embedding_provider == config.provider:
        return generator
    return create_generator(config, key_manager=key_manager, provider=config.embedding_provider)
