"""Shared fixtures: an instrumented fake generation backend and a test config."""

import asyncio
import json
from typing import Mapping, Optional, Sequence

import pytest

from i18n_app_translator.config import AppConfig
from i18n_app_translator.errors import GenerationError
from i18n_app_translator.models import SimilarTranslation
from i18n_app_translator.translate.base import GenerationBackend, MockGenerator
from i18n_app_translator.translate.prompting import NO_CHANGES, ReviewOutcome


class FakeGenerator(GenerationBackend):
    """Deterministic backend that records calls and in-flight concurrency.

    Args:
        fail_on: Source texts whose calls raise GenerationError
        reviews: Source text -> improved translation returned by review
        delay: Seconds every call sleeps
        delays: Per source text override of ``delay``
    """

    def __init__(self, fail_on=(), reviews=None, delay=0.0, delays=None):
        self.fail_on = set(fail_on)
        self.reviews = dict(reviews or {})
        self.delay = delay
        self.delays = dict(delays or {})
        self.translate_calls = []
        self.review_calls = []
        self.events = []
        self.in_flight = 0
        self.peak = 0
        self._embedder = MockGenerator()

    @property
    def name(self) -> str:
        return "fake"

    async def _call(self, text: str) -> None:
        self.events.append(("start", text))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, self.delay))
            if text in self.fail_on:
                raise GenerationError(f"backend refused {text!r}")
        finally:
            self.in_flight -= 1
            self.events.append(("end", text))

    async def translate(
        self,
        source_text: str,
        target_language: str,
        context: Optional[str] = None,
        similar: Optional[Sequence[SimilarTranslation]] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> str:
        self.translate_calls.append({
            "source_text": source_text,
            "target_language": target_language,
            "context": context,
            "similar": list(similar or []),
            "glossary": dict(glossary or {}),
        })
        await self._call(source_text)
        return f"[{target_language}] {source_text}"

    async def review(
        self,
        source_text: str,
        existing_translation: str,
        target_language: str,
        context: Optional[str] = None,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> ReviewOutcome:
        self.review_calls.append({
            "source_text": source_text,
            "existing_translation": existing_translation,
            "context": context,
            "glossary": dict(glossary or {}),
        })
        await self._call(source_text)
        improved = self.reviews.get(source_text, existing_translation)
        if improved == existing_translation:
            return ReviewOutcome(improved=improved, changes=NO_CHANGES)
        return ReviewOutcome(improved=improved, changes=f"Reworded {source_text}")

    async def embed(self, text: str) -> list[float]:
        return await self._embedder.embed(text)


@pytest.fixture
def make_generator():
    return FakeGenerator


@pytest.fixture
def config(tmp_path):
    """Offline config: mock providers, in-memory index, nothing enabled by default."""
    config = AppConfig()
    config.vector_db.enabled = False
    config.vector_db.provider = "memory"
    config.glossary.enabled = False
    config.glossary.path = str(tmp_path / "glossary.json")
    config.translation.show_progress = False
    config.generation.provider = "mock"
    config.generation.embedding_provider = "mock"
    return config


@pytest.fixture
def write_json(tmp_path):
    def write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path
    return write


@pytest.fixture
def read_json():
    def read(path):
        return json.loads(path.read_text(encoding="utf-8"))
    return read
