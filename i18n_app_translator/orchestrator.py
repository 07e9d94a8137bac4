"""
Translation orchestrator.

Turns entries into translation results under a concurrency bound:

- translate_entry: similar-translation lookup, glossary lookup,
  generation, index write-back
- review_entry: glossary lookup, review call, index write-back when the
  text actually changed
- batch_translate / batch_review: run the per-entry steps over many
  entries, at most ``concurrency`` in flight, isolating failures per entry

Lookups against the similarity index and the glossary are best-effort:
a failure is logged and replaced by an empty result. Generation
failures propagate out of the per-entry calls and are isolated by the
batch layer, which only returns the entries that succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

from i18n_app_translator.catalog import index_entries
from i18n_app_translator.errors import GenerationError
from i18n_app_translator.models import BatchProgress, Entry, SimilarTranslation, TranslationResult
from i18n_app_translator.utils import count_windows, truncate, windows

if TYPE_CHECKING:
    from i18n_app_translator.config import AppConfig
    from i18n_app_translator.translate.base import GenerationBackend
    from i18n_app_translator.translate.glossary import GlossaryStore
    from i18n_app_translator.translate.memory import SimilarityIndex

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


@dataclass
class TranslateOptions:
    """Per-run knobs for the orchestrator.

    Attributes:
        use_vector_db: Look up and store similar translations
        use_glossary: Pass glossary terms to the generator
        similar_translations_limit: How many similar translations to retrieve
        context: Overrides each entry's own context when set
        concurrency: Maximum entries in flight
        show_progress: Log window and completion counters
        timeout: Seconds allowed per generation or index call (None = unbounded)
        scheduling: "window" (sequential windows) or "pool" (semaphore)
        progress_callback: Called after every finished entry (replaces the
            progress log lines)
    """
    use_vector_db: bool = True
    use_glossary: bool = True
    similar_translations_limit: int = 3
    context: Optional[str] = None
    concurrency: int = 5
    show_progress: bool = False
    timeout: Optional[float] = 60.0
    scheduling: str = "window"
    progress_callback: Optional[ProgressCallback] = None

    @classmethod
    def from_config(cls, config: "AppConfig", **overrides) -> "TranslateOptions":
        options = cls(
            use_vector_db=config.vector_db.enabled,
            use_glossary=config.glossary.enabled,
            similar_translations_limit=config.translation.similar_translations_limit,
            concurrency=config.translation.concurrency,
            show_progress=config.translation.show_progress,
            timeout=config.translation.timeout,
            scheduling=config.translation.scheduling,
        )
        return replace(options, **overrides)


# Batch calls take the same options
BatchOptions = TranslateOptions


class Translator:
    """Orchestrates generation with retrieval context.

    The generator, index and glossary are created once per run and
    shared by every concurrent entry operation.

    Usage:
        translator = Translator(generator, index=index, glossary=glossary)
        results = await translator.batch_translate(entries, "ja", TranslateOptions(concurrency=5))
    """

    def __init__(
        self,
        generator: "GenerationBackend",
        index: Optional["SimilarityIndex"] = None,
        glossary: Optional["GlossaryStore"] = None,
    ):
        self.generator = generator
        self.index = index
        self.glossary = glossary

    # ------------------------------------------------------------------
    # Best-effort lookups
    # ------------------------------------------------------------------

    async def _similar(
        self, text: str, language: str, options: TranslateOptions
    ) -> list[SimilarTranslation]:
        if not options.use_vector_db or self.index is None:
            return []
        outcome = await self.index.try_find_similar(
            text, language, options.similar_translations_limit, timeout=options.timeout
        )
        if not outcome.ok:
            logger.warning("Similar translation lookup failed for %r: %s", truncate(text), outcome.error)
            return []
        similar = outcome.unwrap_or([])
        logger.debug("Found %d similar translations for %r", len(similar), truncate(text))
        return similar

    def _glossary_terms(self, language: str, options: TranslateOptions) -> dict[str, str]:
        if not options.use_glossary or self.glossary is None:
            return {}
        outcome = self.glossary.try_entries_for_language(language)
        if not outcome.ok:
            logger.warning("Glossary lookup failed for %s: %s", language, outcome.error)
            return {}
        terms = outcome.unwrap_or({})
        logger.debug("Using %d glossary terms for %s", len(terms), language)
        return terms

    async def _remember(
        self,
        source_text: str,
        translation: str,
        language: str,
        context: Optional[str],
        options: TranslateOptions,
    ) -> None:
        if not options.use_vector_db or self.index is None:
            return
        outcome = await self.index.try_add_translation(
            source_text, translation, language, context, timeout=options.timeout
        )
        if outcome.ok:
            logger.debug("Stored translation of %r in similarity index", truncate(source_text))
        else:
            logger.warning("Could not store translation of %r: %s", truncate(source_text), outcome.error)

    async def _generate(self, call: Awaitable, timeout: Optional[float], what: str):
        try:
            if timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise GenerationError(f"{what} timed out after {timeout}s") from e

    # ------------------------------------------------------------------
    # Per-entry operations
    # ------------------------------------------------------------------

    async def translate_entry(
        self,
        entry: Entry,
        target_language: str,
        options: Optional[TranslateOptions] = None,
    ) -> TranslationResult:
        """Translate one entry.

        Raises:
            GenerationError: If the generation backend fails or times out
        """
        options = options or TranslateOptions()
        context = options.context or entry.context
        logger.debug("Translating %s: %r", entry.key, truncate(entry.value))

        similar = await self._similar(entry.value, target_language, options)
        glossary_terms = self._glossary_terms(target_language, options)

        translated = await self._generate(
            self.generator.translate(
                entry.value,
                target_language,
                context=context,
                similar=similar,
                glossary=glossary_terms,
            ),
            options.timeout,
            f"Translation of {entry.key}",
        )
        logger.debug("Translated %s: %r", entry.key, truncate(translated))

        await self._remember(entry.value, translated, target_language, context, options)
        return TranslationResult(original=entry.value, translated=translated, is_new=True)

    async def review_entry(
        self,
        source_entry: Entry,
        target_entry: Entry,
        target_language: str,
        options: Optional[TranslateOptions] = None,
    ) -> TranslationResult:
        """Review one existing translation.

        Raises:
            GenerationError: If the generation backend fails or times out
        """
        options = options or TranslateOptions()
        context = options.context or source_entry.context or target_entry.context
        logger.debug("Reviewing %s: %r", source_entry.key, truncate(target_entry.value))

        glossary_terms = self._glossary_terms(target_language, options)

        outcome = await self._generate(
            self.generator.review(
                source_entry.value,
                target_entry.value,
                target_language,
                context=context,
                glossary=glossary_terms,
            ),
            options.timeout,
            f"Review of {source_entry.key}",
        )

        if outcome.improved != target_entry.value:
            logger.debug("Improved %s: %s", source_entry.key, outcome.changes)
            await self._remember(source_entry.value, outcome.improved, target_language, context, options)

        return TranslationResult(
            original=source_entry.value,
            translated=outcome.improved,
            is_new=False,
            changes=outcome.changes,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def batch_translate(
        self,
        entries: Sequence[Entry],
        target_language: str,
        options: Optional[TranslateOptions] = None,
    ) -> dict[str, TranslationResult]:
        """Translate many entries; returns results for the ones that succeeded."""
        options = options or TranslateOptions()
        jobs = [
            (entry.key, lambda entry=entry: self.translate_entry(entry, target_language, options))
            for entry in entries
        ]
        return await self._run_batch(jobs, options, "Translating")

    async def batch_review(
        self,
        source_entries: Sequence[Entry],
        target_entries: Sequence[Entry],
        target_language: str,
        options: Optional[TranslateOptions] = None,
    ) -> dict[str, TranslationResult]:
        """Review source entries that have a counterpart in ``target_entries``."""
        options = options or TranslateOptions()
        targets = index_entries(target_entries)
        jobs = [
            (
                source.key,
                lambda source=source: self.review_entry(
                    source, targets[source.key], target_language, options
                ),
            )
            for source in source_entries
            if source.key in targets
        ]
        return await self._run_batch(jobs, options, "Reviewing")

    async def _run_batch(
        self,
        jobs: list[tuple[str, Callable[[], Awaitable[TranslationResult]]]],
        options: TranslateOptions,
        label: str,
    ) -> dict[str, TranslationResult]:
        if options.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {options.concurrency}")

        progress = BatchProgress(
            total=len(jobs),
            total_windows=count_windows(len(jobs), options.concurrency),
        )
        if not jobs:
            return {}

        async def run_one(key: str, job: Callable[[], Awaitable[TranslationResult]]) -> None:
            try:
                result = await job()
            except Exception as e:
                logger.error("%s %s failed: %s", label, key, e)
                progress.record_failure(key)
            else:
                progress.record_success(key, result)
            self._report(progress, options)

        if options.scheduling == "pool":
            semaphore = asyncio.Semaphore(options.concurrency)

            async def bounded(key, job):
                async with semaphore:
                    await run_one(key, job)

            await asyncio.gather(*(bounded(key, job) for key, job in jobs))
        else:
            for number, window in enumerate(windows(jobs, options.concurrency), start=1):
                progress.window = number
                if options.show_progress:
                    logger.info("%s batch %d/%d", label, number, progress.total_windows)
                await asyncio.gather(*(run_one(key, job) for key, job in window))

        logger.info(
            "%s complete: %d/%d succeeded, %d failed",
            label, len(progress.succeeded), progress.total, len(progress.failed_keys),
        )
        # preserve request order
        return {key: progress.succeeded[key] for key, _ in jobs if key in progress.succeeded}

    @staticmethod
    def _report(progress: BatchProgress, options: TranslateOptions) -> None:
        if options.progress_callback is not None:
            options.progress_callback(progress)
        elif options.show_progress:
            logger.info(
                "Progress: %d/%d (%.0f%%)", progress.completed, progress.total, progress.percent
            )
