"""Tests for the LLM backends, with the HTTP clients replaced by fakes."""

import asyncio
from types import SimpleNamespace

import pytest

from i18n_app_translator.config import GenerationConfig
from i18n_app_translator.errors import ConfigError, GenerationError
from i18n_app_translator.keys import KeyManager
from i18n_app_translator.translate.base import MockGenerator, create_embedder, create_generator
from i18n_app_translator.translate.llm import AnthropicGenerator, DeepSeekGenerator, OpenAIGenerator
from i18n_app_translator.translate.prompting import SYSTEM_PROMPT


class FakeChatCompletions:
    def __init__(self, content="", error=None):
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeEmbeddings:
    async def create(self, **kwargs):
        return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])


def openai_generator(completions, cls=OpenAIGenerator, **config):
    generator = cls(GenerationConfig(**config), api_key="sk-test")
    generator._client = SimpleNamespace(
        chat=SimpleNamespace(completions=completions),
        embeddings=FakeEmbeddings(),
    )
    return generator


class TestOpenAIGenerator:
    """Chat completion requests and response handling."""

    def test_translate_sends_prompt_and_cleans_answer(self):
        completions = FakeChatCompletions("```\nこんにちは\n```")
        generator = openai_generator(completions, model="gpt-4o-mini")

        result = asyncio.run(generator.translate("Hello", "ja", context="greeting"))

        assert result == "こんにちは"
        request = completions.requests[0]
        assert request["model"] == "gpt-4o-mini"
        assert request["temperature"] == 0.2
        assert request["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert "Context: This text is used as a greeting" in request["messages"][1]["content"]

    def test_client_error_becomes_generation_error(self):
        generator = openai_generator(FakeChatCompletions(error=RuntimeError("429 rate limited")))

        with pytest.raises(GenerationError, match="429"):
            asyncio.run(generator.translate("Hello", "ja"))

    def test_empty_answer_is_generation_error(self):
        generator = openai_generator(FakeChatCompletions("   "))

        with pytest.raises(GenerationError):
            asyncio.run(generator.translate("Hello", "ja"))

    def test_review_parses_structured_answer(self):
        generator = openai_generator(FakeChatCompletions("IMPROVED: 送信する\nCHANGES: Verb form"))

        outcome = asyncio.run(generator.review("Submit", "送信", "ja"))

        assert outcome.improved == "送信する"
        assert outcome.changes == "Verb form"

    def test_embed(self):
        generator = openai_generator(FakeChatCompletions())

        assert asyncio.run(generator.embed("Hello")) == [0.1, 0.2, 0.3]

    def test_deepseek_is_openai_compatible(self):
        generator = openai_generator(FakeChatCompletions("Bonjour"), cls=DeepSeekGenerator, model="deepseek-chat")

        assert generator.name == "deepseek-deepseek-chat"
        assert DeepSeekGenerator.DEFAULT_BASE_URL == "https://api.deepseek.com/v1"
        assert asyncio.run(generator.translate("Hello", "fr")) == "Bonjour"


class TestAnthropicGenerator:
    def test_system_prompt_passed_separately(self):
        requests = []

        async def create(**kwargs):
            requests.append(kwargs)
            return SimpleNamespace(content=[SimpleNamespace(text="Hallo")])

        generator = AnthropicGenerator(GenerationConfig(model="claude-sonnet"), api_key="sk-ant")
        generator._client = SimpleNamespace(messages=SimpleNamespace(create=create))

        assert asyncio.run(generator.translate("Hello", "de")) == "Hallo"
        assert requests[0]["system"] == SYSTEM_PROMPT
        assert requests[0]["messages"][0]["role"] == "user"


class TestFactories:
    """create_generator / create_embedder."""

    def test_mock_needs_no_key(self):
        assert isinstance(create_generator(GenerationConfig(provider="mock")), MockGenerator)

    def test_missing_key_is_config_error(self, tmp_path):
        km = KeyManager(key_file=tmp_path / "keys.json", use_keyring=False, environ={})

        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            create_generator(GenerationConfig(provider="openai"), key_manager=km)

    def test_key_from_key_manager(self, tmp_path):
        km = KeyManager(key_file=tmp_path / "keys.json", use_keyring=False, environ={"DEEPSEEK_API_KEY": "sk-ds"})

        generator = create_generator(GenerationConfig(provider="deepseek", model="deepseek-chat"), key_manager=km)

        assert isinstance(generator, DeepSeekGenerator)
        assert generator.api_key == "sk-ds"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError):
            create_generator(GenerationConfig(provider="bard", api_key="x"))

    def test_embedder_reuses_generator_for_same_provider(self):
        generator = MockGenerator()
        config = GenerationConfig(provider="mock", embedding_provider="mock")

        assert create_embedder(config, generator) is generator

    def test_embedder_built_separately_for_other_provider(self):
        config = GenerationConfig(provider="openai", embedding_provider="mock", api_key="sk-test")
        generator = create_generator(config)

        embedder = create_embedder(config, generator)

        assert isinstance(generator, OpenAIGenerator)
        assert isinstance(embedder, MockGenerator)
