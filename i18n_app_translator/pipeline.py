"""
Pipeline drivers.

Each driver runs one end-to-end flow over a source/target catalog pair:

- translate_catalog: diff, translate missing entries, merge, persist
- review_catalog: select outdated (or all) entries, review, merge, persist
- build_vector_index: seed the similarity index from existing translations
- search_similar: query the similarity index
- import_glossary / import_translations: bring external data in

Drivers load inputs once, write outputs once, and raise typed errors
(ConfigError, ParseError) for fatal problems. Entries that fail during a
batch are reported in the RunReport and do not fail the run.

Gateways (generator, similarity index, glossary) may be injected; the
ones a driver builds itself are also closed by it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from i18n_app_translator.catalog import (
    apply_reviews,
    diff,
    index_entries,
    load_catalog,
    load_target,
    merge_translations,
    read_translation_import,
    save_catalog,
    save_provenance,
)
from i18n_app_translator.context import ContextExtractor
from i18n_app_translator.errors import BackendError, ConfigError, TranslatorError
from i18n_app_translator.models import Entry, SimilarTranslation
from i18n_app_translator.orchestrator import ProgressCallback, TranslateOptions, Translator
from i18n_app_translator.translate.base import create_embedder, create_generator
from i18n_app_translator.translate.glossary import GlossaryEntry, GlossaryStore, read_glossary_import
from i18n_app_translator.translate.memory import create_similarity_index
from i18n_app_translator.utils import count_windows, windows

if TYPE_CHECKING:
    from i18n_app_translator.config import AppConfig
    from i18n_app_translator.keys import KeyManager
    from i18n_app_translator.translate.base import GenerationBackend
    from i18n_app_translator.translate.memory import SimilarityIndex

logger = logging.getLogger(__name__)

DEFAULT_VECTOR_BATCH_SIZE = 50
DEFAULT_SEARCH_LIMIT = 5


@dataclass
class RunReport:
    """Summary of a translate or review run."""
    requested: int = 0
    succeeded: int = 0
    failed_keys: list[str] = field(default_factory=list)
    changed: int = 0
    output_path: Optional[Path] = None

    @property
    def failed(self) -> int:
        return len(self.failed_keys)

    @property
    def success_rate(self) -> float:
        if self.requested == 0:
            return 1.0
        return self.succeeded / self.requested


@dataclass
class VectorBuildReport:
    matched: int = 0
    added: int = 0
    errors: int = 0


# ============================================================================
# Gateway setup
# ============================================================================

async def _close_index(index: "SimilarityIndex", required: bool) -> None:
    """Close a driver-owned index; a failed final write only warns unless required."""
    try:
        await index.close()
    except BackendError as e:
        if required:
            raise
        logger.warning("Could not save similarity index: %s", e.message)


async def _open_index(
    config: "AppConfig",
    stack: AsyncExitStack,
    generator: Optional["GenerationBackend"],
    index: Optional["SimilarityIndex"],
    key_manager: Optional["KeyManager"],
    required: bool = False,
) -> Optional["SimilarityIndex"]:
    """Build (unless injected) and initialize the similarity index.

    Failure is fatal only when ``required``; otherwise the run continues
    without similar translations.
    """
    try:
        if index is None:
            embedder = create_embedder(config.generation, generator, key_manager)
            if embedder is not generator:
                stack.push_async_callback(embedder.close)
            index = create_similarity_index(config.vector_db, embedder)
            await index.initialize()
            stack.push_async_callback(_close_index, index, required)
        else:
            await index.initialize()
    except TranslatorError as e:
        if required:
            raise
        logger.warning("Similarity index unavailable, continuing without it: %s", e.message)
        return None
    return index


def _open_glossary(config: "AppConfig", glossary: Optional[GlossaryStore]) -> Optional[GlossaryStore]:
    if glossary is not None:
        return glossary
    store = GlossaryStore(config.glossary.path)
    try:
        store.load()
    except (TranslatorError, OSError) as e:
        logger.warning("Glossary unavailable, continuing without it: %s", e)
        return None
    return store


def _open_generator(
    config: "AppConfig",
    stack: AsyncExitStack,
    generator: Optional["GenerationBackend"],
    key_manager: Optional["KeyManager"],
) -> "GenerationBackend":
    if generator is None:
        generator = create_generator(
            config.generation, key_manager=key_manager, debug=config.translation.debug
        )
        stack.push_async_callback(generator.close)
    return generator


def attach_usage_context(entries: list[Entry], source_dir: str | Path) -> int:
    """Give entries without a context a usage hint from the source tree.

    Returns the number of entries that received one.
    """
    pending = [entry for entry in entries if not entry.context]
    if not pending:
        return 0
    contexts = ContextExtractor(source_dir).extract_context_for_keys(e.key for e in pending)
    attached = 0
    for entry in pending:
        hint = contexts[entry.key].describe()
        if hint:
            entry.context = hint
            attached += 1
    return attached


# ============================================================================
# Translate / review
# ============================================================================

async def translate_catalog(
    source: str | Path,
    dest: str | Path,
    language: str,
    config: "AppConfig",
    *,
    generator: Optional["GenerationBackend"] = None,
    index: Optional["SimilarityIndex"] = None,
    glossary: Optional[GlossaryStore] = None,
    context: Optional[str] = None,
    source_dir: str | Path | None = None,
    progress: Optional[ProgressCallback] = None,
    key_manager: Optional["KeyManager"] = None,
) -> RunReport:
    """Translate every source key missing from the target catalog.

    Args:
        source: Source catalog path
        dest: Target catalog path (created when absent)
        language: Target language code
        config: Application config
        generator / index / glossary: Injected gateways (built from config otherwise)
        context: Usage context applied to every entry
        source_dir: Application source tree to mine for usage context
        progress: Called after every finished entry

    Raises:
        ConfigError: Missing source file or generation credentials
        ParseError: Corrupt source or target catalog
    """
    dest = Path(dest)
    source_entries = load_catalog(source)
    target_entries = load_target(dest) if dest.exists() else []
    logger.info(
        "Loaded %d source entries and %d %s entries", len(source_entries), len(target_entries), language
    )

    to_translate = diff(source_entries, target_entries).missing
    report = RunReport(requested=len(to_translate), output_path=dest)
    if not to_translate:
        logger.info("No missing translations for %s", language)
        return report

    if source_dir is not None:
        attached = attach_usage_context(to_translate, source_dir)
        logger.info("Attached usage context to %d entries", attached)

    async with AsyncExitStack() as stack:
        generator = _open_generator(config, stack, generator, key_manager)
        active_index = None
        if config.vector_db.enabled:
            active_index = await _open_index(config, stack, generator, index, key_manager)
        active_glossary = _open_glossary(config, glossary) if config.glossary.enabled else None

        options = TranslateOptions.from_config(
            config,
            context=context,
            progress_callback=progress,
            use_vector_db=active_index is not None,
            use_glossary=active_glossary is not None,
        )
        translator = Translator(generator, index=active_index, glossary=active_glossary)
        logger.info("Translating %d entries to %s", len(to_translate), language)
        results = await translator.batch_translate(to_translate, language, options)

        merged = merge_translations(source_entries, target_entries, results)
        save_catalog(dest, merged)
        save_provenance(dest, merged)

    report.succeeded = len(results)
    report.changed = len(results)
    report.failed_keys = [entry.key for entry in to_translate if entry.key not in results]
    logger.info("Saved %s (%d/%d translated)", dest, report.succeeded, report.requested)
    return report


async def review_catalog(
    source: str | Path,
    dest: str | Path,
    language: str,
    config: "AppConfig",
    *,
    review_all: bool = False,
    generator: Optional["GenerationBackend"] = None,
    index: Optional["SimilarityIndex"] = None,
    glossary: Optional[GlossaryStore] = None,
    context: Optional[str] = None,
    progress: Optional[ProgressCallback] = None,
    key_manager: Optional["KeyManager"] = None,
) -> RunReport:
    """Review outdated translations, or every translation with ``review_all``.

    Raises:
        ConfigError: Missing source or target file, or generation credentials
        ParseError: Corrupt source or target catalog
    """
    dest = Path(dest)
    source_entries = load_catalog(source)
    if not dest.exists():
        raise ConfigError(f"Target file {dest} does not exist. Run translate first.")
    target_entries = load_target(dest)

    if review_all:
        targets = index_entries(target_entries)
        selected = [entry for entry in source_entries if entry.key in targets]
    else:
        selected = [pair.source for pair in diff(source_entries, target_entries).outdated]

    report = RunReport(requested=len(selected), output_path=dest)
    if not selected:
        logger.info("No translations to review for %s", language)
        return report

    previous = {entry.key: entry.value for entry in target_entries}

    async with AsyncExitStack() as stack:
        generator = _open_generator(config, stack, generator, key_manager)
        active_index = None
        if config.vector_db.enabled:
            active_index = await _open_index(config, stack, generator, index, key_manager)
        active_glossary = _open_glossary(config, glossary) if config.glossary.enabled else None

        options = TranslateOptions.from_config(
            config,
            context=context,
            progress_callback=progress,
            use_vector_db=active_index is not None,
            use_glossary=active_glossary is not None,
        )
        translator = Translator(generator, index=active_index, glossary=active_glossary)
        logger.info("Reviewing %d %s translations", len(selected), language)
        results = await translator.batch_review(selected, target_entries, language, options)

        for key, result in results.items():
            if result.translated != previous[key]:
                logger.info("%s: %s", key, result.changes)

        updated = apply_reviews(target_entries, results)
        save_catalog(dest, updated)
        save_provenance(dest, updated)

    report.succeeded = len(results)
    report.changed = sum(1 for key, r in results.items() if r.translated != previous[key])
    report.failed_keys = [entry.key for entry in selected if entry.key not in results]
    logger.info("Saved %s (%d reviewed, %d changed)", dest, report.succeeded, report.changed)
    return report


# ============================================================================
# Similarity index
# ============================================================================

async def build_vector_index(
    source: str | Path,
    target: str | Path,
    language: str,
    config: "AppConfig",
    *,
    context: Optional[str] = None,
    batch_size: int = DEFAULT_VECTOR_BATCH_SIZE,
    generator: Optional["GenerationBackend"] = None,
    index: Optional["SimilarityIndex"] = None,
    key_manager: Optional["KeyManager"] = None,
) -> VectorBuildReport:
    """Store every (source, target) pair that shares a key in the similarity index.

    Raises:
        ConfigError: Missing source or target file
        BackendUnavailable: The index cannot be opened
        BackendError: The index cannot be saved
    """
    target = Path(target)
    source_entries = load_catalog(source)
    if not target.exists():
        raise ConfigError(f"Target file {target} does not exist. Run translate first.")
    targets = index_entries(load_catalog(target))

    pairs = [(entry, targets[entry.key]) for entry in source_entries if entry.key in targets]
    report = VectorBuildReport(matched=len(pairs))
    logger.info("Found %d matched entries to add to the similarity index", len(pairs))
    if not pairs:
        return report

    async with AsyncExitStack() as stack:
        active_index = await _open_index(config, stack, generator, index, key_manager, required=True)

        async def add(pair: tuple[Entry, Entry]) -> bool:
            source_entry, target_entry = pair
            outcome = await active_index.try_add_translation(
                source_entry.value,
                target_entry.value,
                language,
                context or source_entry.context or "unknown",
            )
            if not outcome.ok:
                logger.error("Error adding %s to the similarity index: %s", source_entry.key, outcome.error)
            return outcome.ok

        total_windows = count_windows(len(pairs), batch_size)
        for number, window in enumerate(windows(pairs, batch_size), start=1):
            logger.info("Processing batch %d/%d", number, total_windows)
            results = await asyncio.gather(*(add(pair) for pair in window))
            report.added += sum(results)
            report.errors += len(results) - sum(results)

    logger.info("Similarity index build completed: %d added, %d errors", report.added, report.errors)
    return report


async def search_similar(
    query: str,
    language: str,
    config: "AppConfig",
    *,
    limit: int = DEFAULT_SEARCH_LIMIT,
    generator: Optional["GenerationBackend"] = None,
    index: Optional["SimilarityIndex"] = None,
    key_manager: Optional["KeyManager"] = None,
) -> list[SimilarTranslation]:
    """Return translations similar to ``query`` in ``language``.

    Raises:
        BackendError: The index cannot be opened or queried
    """
    async with AsyncExitStack() as stack:
        active_index = await _open_index(config, stack, generator, index, key_manager, required=True)
        return await active_index.find_similar(query, language, limit)


# ============================================================================
# Import
# ============================================================================

def import_glossary(
    source: str | Path,
    glossary_path: str | Path,
    source_language: str = "en",
    target_language: Optional[str] = None,
    fmt: str = "json",
) -> int:
    """Upsert glossary rows from an external file. Returns the imported count."""
    source = Path(source)
    if not source.exists():
        raise ConfigError(f"Import file not found: {source}")

    store = GlossaryStore(glossary_path)
    store.load()
    language = target_language or source_language

    imported = 0
    for row in read_glossary_import(source, fmt):
        if not row.is_valid:
            logger.warning("Skipping invalid glossary row: %r", row)
            continue
        store.upsert(GlossaryEntry(
            term=row.term,
            translations={language: row.translation},
            context=row.context,
            notes=row.notes,
        ))
        imported += 1

    store.save()
    logger.info("Imported %d glossary entries into %s", imported, glossary_path)
    return imported


def import_translations(
    source: str | Path,
    dest: str | Path,
    target_language: str,
    fmt: str = "json",
) -> tuple[int, int]:
    """Merge externally produced translations into a target catalog.

    Existing keys are updated in place, new keys are appended. Updated
    keys lose their recorded provenance since the new value was not
    produced from a known source text.

    Returns:
        (added, updated) counts
    """
    dest = Path(dest)
    imported = read_translation_import(source, fmt)
    entries = load_target(dest) if dest.exists() else []
    existing = index_entries(entries)

    added = updated = 0
    for row in imported:
        entry = existing.get(row.key)
        if entry is None:
            entries.append(row)
            existing[row.key] = row
            added += 1
        else:
            entry.value = row.value
            entry.translated_from = None
            updated += 1

    save_catalog(dest, entries)
    save_provenance(dest, entries)
    logger.info("Imported %s translations into %s: %d added, %d updated", target_language, dest, added, updated)
    return added, updated
