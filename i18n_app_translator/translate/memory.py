"""
Similarity index of prior translations.

The index stores one record per (language, source text) pair together
with the embedding of the source text, and answers nearest-neighbour
queries filtered to a language. Embeddings come from the generation
backend's ``embed`` capability so exactly one object knows which
embedding model is in use.

Backends:
- InMemorySimilarityIndex: numpy cosine search, lives for one process
- LocalSimilarityIndex: same search, persisted to an ``.npz`` file
"""

from __future__ import annotations

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import numpy as np

from i18n_app_translator.errors import BackendError, BackendUnavailable, Outcome, TranslatorError
from i18n_app_translator.models import SimilarityRecord, SimilarTranslation

if TYPE_CHECKING:
    from i18n_app_translator.config import VectorDBConfig
    from i18n_app_translator.translate.base import GenerationBackend

logger = logging.getLogger(__name__)


def record_id(language: str, source_text: str) -> str:
    """Deterministic id for a (language, source text) pair."""
    encoded = base64.urlsafe_b64encode(source_text.encode("utf-8")).decode("ascii")
    return f"{language}_{encoded}"


class SimilarityIndex(ABC):
    """Contract every similarity backend implements.

    All methods may raise BackendError. ``try_*`` variants return an
    Outcome instead so callers can substitute a fallback explicitly.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Connect / load. Idempotent. Raises BackendUnavailable."""
        pass

    @abstractmethod
    async def add_translation(
        self,
        source_text: str,
        translation: str,
        language: str,
        context: Optional[str] = None,
    ) -> None:
        """Embed ``source_text`` and upsert the record for (language, source_text)."""
        pass

    @abstractmethod
    async def find_similar(
        self,
        source_text: str,
        language: str,
        limit: int = 3,
    ) -> list[SimilarTranslation]:
        """Return up to ``limit`` records for ``language``, most similar first."""
        pass

    async def close(self) -> None:
        pass

    @staticmethod
    async def _within(call, timeout: Optional[float]):
        if timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise BackendError(f"Similarity index call timed out after {timeout}s") from e

    async def try_find_similar(
        self,
        source_text: str,
        language: str,
        limit: int = 3,
        timeout: Optional[float] = None,
    ) -> Outcome[list[SimilarTranslation]]:
        try:
            similar = await self._within(self.find_similar(source_text, language, limit), timeout)
            return Outcome.success(similar)
        except BackendError as e:
            return Outcome.failure(e)

    async def try_add_translation(
        self,
        source_text: str,
        translation: str,
        language: str,
        context: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Outcome[None]:
        try:
            await self._within(
                self.add_translation(source_text, translation, language, context), timeout
            )
            return Outcome.success(None)
        except BackendError as e:
            return Outcome.failure(e)


class InMemorySimilarityIndex(SimilarityIndex):
    """Cosine-similarity index held in process memory.

    Usage:
        index = InMemorySimilarityIndex(embedder)
        await index.initialize()
        await index.add_translation("Save", "保存", "ja", "button label")
        similar = await index.find_similar("Save file", "ja", limit=3)
    """

    def __init__(self, embedder: Optional["GenerationBackend"]):
        self.embedder = embedder
        self._records: dict[str, SimilarityRecord] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._initialized = False

    def __len__(self) -> int:
        return len(self._records)

    def get(self, language: str, source_text: str) -> Optional[SimilarityRecord]:
        return self._records.get(record_id(language, source_text))

    async def initialize(self) -> None:
        if self.embedder is None:
            raise BackendUnavailable("No embedding backend configured for the similarity index")
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise BackendUnavailable("Similarity index used before initialize()")

    async def _embed(self, text: str) -> np.ndarray:
        try:
            vector = await self.embedder.embed(text)
        except TranslatorError as e:
            raise BackendError(f"Embedding failed: {e.message}") from e
        array = np.asarray(vector, dtype=np.float32)
        if array.ndim != 1 or array.size == 0:
            raise BackendError("Embedding backend returned an empty vector")
        return array

    async def add_translation(
        self,
        source_text: str,
        translation: str,
        language: str,
        context: Optional[str] = None,
    ) -> None:
        self._require_initialized()
        vector = await self._embed(source_text)
        rid = record_id(language, source_text)
        self._records[rid] = SimilarityRecord(
            source_text=source_text,
            translation=translation,
            language=language,
            context=context or "unknown",
        )
        self._vectors[rid] = vector
        logger.debug("Stored similarity record %s", rid)

    async def find_similar(
        self,
        source_text: str,
        language: str,
        limit: int = 3,
    ) -> list[SimilarTranslation]:
        self._require_initialized()
        if limit <= 0:
            return []
        ids = [rid for rid, record in self._records.items() if record.language == language]
        if not ids:
            return []

        query = await self._embed(source_text)
        matrix = np.stack([self._vectors[rid] for rid in ids])
        if matrix.shape[1] != query.shape[0]:
            raise BackendError(
                f"Embedding dimension mismatch: index has {matrix.shape[1]}, query has {query.shape[0]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        scores = np.clip(matrix @ query / norms, 0.0, 1.0)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [
            SimilarTranslation(
                source=self._records[ids[i]].source_text,
                translation=self._records[ids[i]].translation,
                similarity=float(scores[i]),
            )
            for i in order
        ]


class LocalSimilarityIndex(InMemorySimilarityIndex):
    """In-memory index persisted to a numpy ``.npz`` file.

    The file is read on ``initialize`` and written on ``flush``/``close``
    when records were added.
    """

    def __init__(self, embedder: Optional["GenerationBackend"], path: str | Path):
        super().__init__(embedder)
        self.path = Path(path)
        self._dirty = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self._initialized:
            return
        await super().initialize()
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with np.load(self.path) as data:
                ids = data["ids"].tolist()
                sources = data["sources"].tolist()
                translations = data["translations"].tolist()
                languages = data["languages"].tolist()
                contexts = data["contexts"].tolist()
                vectors = data["vectors"]
        except (OSError, KeyError, ValueError) as e:
            raise BackendUnavailable(f"Cannot read similarity index {self.path}: {e}") from e

        for i, rid in enumerate(ids):
            self._records[rid] = SimilarityRecord(
                source_text=sources[i],
                translation=translations[i],
                language=languages[i],
                context=contexts[i],
            )
            self._vectors[rid] = np.asarray(vectors[i], dtype=np.float32)
        logger.info("Loaded %d similarity records from %s", len(ids), self.path)

    async def add_translation(
        self,
        source_text: str,
        translation: str,
        language: str,
        context: Optional[str] = None,
    ) -> None:
        await super().add_translation(source_text, translation, language, context)
        self._dirty = True

    async def flush(self) -> None:
        async with self._lock:
            if not self._dirty:
                return
            ids = list(self._records)
            records = [self._records[rid] for rid in ids]
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "wb") as f:
                    np.savez(
                        f,
                        ids=np.array(ids, dtype=str),
                        sources=np.array([r.source_text for r in records], dtype=str),
                        translations=np.array([r.translation for r in records], dtype=str),
                        languages=np.array([r.language for r in records], dtype=str),
                        contexts=np.array([r.context for r in records], dtype=str),
                        vectors=np.stack([self._vectors[rid] for rid in ids])
                        if ids else np.zeros((0, 0), dtype=np.float32),
                    )
            except (OSError, ValueError) as e:
                raise BackendError(f"Cannot write similarity index {self.path}: {e}") from e
            self._dirty = False
            logger.debug("Wrote %d similarity records to %s", len(ids), self.path)

    async def close(self) -> None:
        if self._initialized:
            await self.flush()


def create_similarity_index(
    config: "VectorDBConfig",
    embedder: Optional["GenerationBackend"],
) -> SimilarityIndex:
    """Build the configured similarity index (not yet initialized)."""
    provider = config.provider.lower()

    if provider == "memory":
        return InMemorySimilarityIndex(embedder)

    if provider == "local":
        return LocalSimilarityIndex(embedder, config.path)

    raise BackendUnavailable(
        f"Unknown vector_db provider: {provider}. Available providers: memory, local"
    )
