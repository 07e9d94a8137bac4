"""
LLM-based generation backends.

This module provides:
- OpenAI GPT backend (GPT-4o, GPT-4o-mini, etc.), also used for embeddings
- DeepSeek backend (OpenAI-compatible endpoint)
- Anthropic Claude backend (translate/review only, no embeddings)

All backends share prompt construction from ``prompting`` and differ only
in how one chat completion is requested.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Mapping, Optional, Sequence

from i18n_app_translator.config import GenerationConfig
from i18n_app_translator.errors import ConfigError, GenerationError, TranslatorError
from i18n_app_translator.models import SimilarTranslation
from i18n_app_translator.translate.base import GenerationBackend
from i18n_app_translator.translate.prompting import (
    SYSTEM_PROMPT,
    ReviewOutcome,
    build_review_prompt,
    build_translation_prompt,
    clean_response,
    parse_review_response,
)

logger = logging.getLogger(__name__)


class BaseLLMGenerator(GenerationBackend):
    """Base class for chat-completion backends.

    Provides common functionality:
    - Prompt construction with context, similar translations and glossary
    - Response cleaning and review parsing
    - Wrapping client failures in GenerationError
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        api_key: Optional[str] = None,
        debug: bool = False,
    ):
        self.config = config or GenerationConfig()
        self.api_key = api_key or self.config.api_key
        self.debug = debug
        self._client = None

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat request and return the raw answer text."""
        pass

    async def _ask(self, user_prompt: str) -> str:
        if self.debug:
            logger.debug("Prompt for %s:\n%s", self.name, user_prompt)
        try:
            content = await self.complete(SYSTEM_PROMPT, user_prompt)
        except TranslatorError:
            raise
        except Exception as e:
            raise GenerationError(f"{self.name} request failed: {e}") from e
        if self.debug:
            logger.debug("Response from %s:\n%s", self.name, content)
        return content

    async def translate(
        self,
        source_text: str,
        target_language: str,
        context: Optional[str] = None,
        similar: Optional[Sequence[SimilarTranslation]] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> str:
        prompt = build_translation_prompt(
            source_text, target_language, context=context, similar=similar, glossary=glossary
        )
        content = await self._ask(prompt)
        translated = clean_response(content)
        if not translated:
            raise GenerationError(f"{self.name} returned an empty translation")
        return translated

    async def review(
        self,
        source_text: str,
        existing_translation: str,
        target_language: str,
        context: Optional[str] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> ReviewOutcome:
        prompt = build_review_prompt(
            source_text, existing_translation, target_language, context=context, glossary=glossary
        )
        content = await self._ask(prompt)
        return parse_review_response(content, existing_translation)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class OpenAIGenerator(BaseLLMGenerator):
    """OpenAI GPT-based backend.

    Usage:
        generator = OpenAIGenerator(GenerationConfig(model="gpt-4o"), api_key="sk-...")
        text = await generator.translate("Save", "ja", context="button label")
    """

    DEFAULT_BASE_URL: Optional[str] = None

    @property
    def name(self) -> str:
        return f"openai-{self.config.model}"

    def _get_client(self):
        """Lazy initialization of the async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            if not self.api_key:
                raise ConfigError(f"API key required for {self.name}")

            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.config.base_url or self.DEFAULT_BASE_URL,
                max_retries=self.config.max_retries,
            )
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def embed(self, text: str) -> list[float]:
        client = self._get_client()
        try:
            response = await client.embeddings.create(
                model=self.config.embedding_model,
                input=text,
            )
        except Exception as e:
            raise GenerationError(f"{self.name} embedding failed: {e}") from e
        return list(response.data[0].embedding)


class DeepSeekGenerator(OpenAIGenerator):
    """DeepSeek backend.

    Uses DeepSeek's chat API which is OpenAI-compatible.
    """

    DEFAULT_BASE_URL = "https://api.deepseek.com/v1"

    @property
    def name(self) -> str:
        return f"deepseek-{self.config.model}"


class AnthropicGenerator(BaseLLMGenerator):
    """Anthropic Claude backend."""

    @property
    def name(self) -> str:
        return f"anthropic-{self.config.model}"

    def _get_client(self):
        """Lazy initialization of the async Anthropic client."""
        if self._client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ConfigError(
                    "Anthropic library required. Install with: pip install 'i18n-app-translator[anthropic]'"
                ) from e

            if not self.api_key:
                raise ConfigError(f"API key required for {self.name}")

            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                max_retries=self.config.max_retries,
            )
        return self._client

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        client = self._get_client()
        response = await client.messages.create(
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return response.content[0].text if response.content else ""
