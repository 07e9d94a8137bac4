"""
Catalog model: flatten, rebuild, diff, and persist key/string catalogs.

This module handles:
- Flattening a nested catalog into ordered dot-path entries
- Rebuilding the nested structure from entries
- Diffing source against target into missing / outdated / unchanged
- Reading and writing catalog JSON documents
- The provenance sidecar that remembers which source text produced
  each target value

Design Philosophy:
- Traversal order is the document's insertion order, so diffs are
  reproducible across runs
- A structurally invalid catalog is fatal (ParseError); there is no
  sensible partial recovery from a corrupt input document
- Staleness is decided by provenance, never by comparing texts across
  languages
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional

from i18n_app_translator.errors import ConfigError, ParseError
from i18n_app_translator.models import Catalog, DiffResult, Entry, OutdatedPair, TranslationResult

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "."


# ============================================================================
# Structure
# ============================================================================

def flatten(catalog: Mapping, prefix: str = "") -> list[Entry]:
    """Flatten a nested catalog into entries, depth first.

    Empty objects have no leaves and produce no entries, so they are not
    kept when a catalog is saved back from its entries.

    Args:
        catalog: Nested mapping whose leaves are strings
        prefix: Key prefix for recursion

    Returns:
        Entries in document order

    Raises:
        ParseError: If a leaf is not a string or a node is not a mapping
    """
    if not isinstance(catalog, Mapping):
        raise ParseError(f"Catalog root must be an object, got {type(catalog).__name__}")

    entries: list[Entry] = []
    _flatten_into(catalog, prefix, entries)
    return entries


def _flatten_into(node: Mapping, prefix: str, entries: list[Entry]) -> None:
    for key, value in node.items():
        full_key = f"{prefix}{KEY_SEPARATOR}{key}" if prefix else str(key)
        if isinstance(value, str):
            entries.append(Entry(key=full_key, value=value))
        elif isinstance(value, Mapping):
            _flatten_into(value, full_key, entries)
        else:
            raise ParseError(
                f"Invalid value at '{full_key}': expected string or object, "
                f"got {type(value).__name__}"
            )


def unflatten(entries: Iterable[Entry]) -> Catalog:
    """Rebuild a nested catalog from entries.

    Intermediate objects are created on demand and the last entry for a
    duplicated key wins.

    Raises:
        ParseError: If one key is a prefix of another (``a`` and ``a.b``)
    """
    data: Catalog = {}
    for entry in entries:
        parts = entry.key.split(KEY_SEPARATOR)
        current = data
        for part in parts[:-1]:
            node = current.get(part)
            if node is None:
                node = current[part] = {}
            elif isinstance(node, str):
                raise ParseError(
                    f"Key conflict: '{entry.key}' nests under a string value at '{part}'"
                )
            current = node
        last = parts[-1]
        if isinstance(current.get(last), dict):
            raise ParseError(f"Key conflict: '{entry.key}' would replace a nested object")
        current[last] = entry.value
    return data


def index_entries(entries: Iterable[Entry]) -> dict[str, Entry]:
    """Key -> entry map; later duplicates overwrite earlier ones."""
    return {entry.key: entry for entry in entries}


def diff(source_entries: list[Entry], target_entries: list[Entry]) -> DiffResult:
    """Classify each source entry against the target catalog.

    - absent from the target: ``missing``
    - present, with recorded provenance that differs from the current
      source text: ``outdated``
    - present otherwise: ``unchanged`` (including entries with no
      recorded provenance)
    """
    target_map = index_entries(target_entries)
    result = DiffResult()

    for source_entry in source_entries:
        target_entry = target_map.get(source_entry.key)
        if target_entry is None:
            result.missing.append(source_entry)
        elif is_outdated(source_entry, target_entry):
            result.outdated.append(OutdatedPair(source=source_entry, target=target_entry))
        else:
            result.unchanged.append(source_entry)

    return result


def is_outdated(source_entry: Entry, target_entry: Entry) -> bool:
    if target_entry.translated_from is None:
        return False
    return target_entry.translated_from != source_entry.value


# ============================================================================
# Merging
# ============================================================================

def merge_translations(
    source_entries: list[Entry],
    target_entries: list[Entry],
    results: Mapping[str, TranslationResult],
) -> list[Entry]:
    """Append newly translated entries after the untouched target entries.

    Only keys that are absent from the target and present in ``results``
    are added, in source order. Provenance is recorded on each new entry.
    """
    merged = list(target_entries)
    existing = {entry.key for entry in target_entries}

    for source_entry in source_entries:
        if source_entry.key in existing:
            continue
        result = results.get(source_entry.key)
        if result is None:
            continue
        merged.append(Entry(
            key=source_entry.key,
            value=result.translated,
            context=source_entry.context,
            translated_from=source_entry.value,
        ))
        existing.add(source_entry.key)

    return merged


def apply_reviews(
    target_entries: list[Entry],
    results: Mapping[str, TranslationResult],
) -> list[Entry]:
    """Replace reviewed values in place, keeping catalog order."""
    updated = []
    for entry in target_entries:
        result = results.get(entry.key)
        if result is None:
            updated.append(entry)
            continue
        updated.append(Entry(
            key=entry.key,
            value=result.translated,
            context=entry.context,
            source_file=entry.source_file,
            source_line=entry.source_line,
            translated_from=result.original,
        ))
    return updated


# ============================================================================
# Storage
# ============================================================================

def load_catalog(path: str | Path) -> list[Entry]:
    """Read a UTF-8 JSON catalog and flatten it.

    Raises:
        ConfigError: If the file does not exist
        ParseError: If the document is not valid JSON or not a string tree
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Catalog file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Error parsing catalog {path}: {e}")

    entries = flatten(data)
    logger.debug("Loaded %d entries from %s", len(entries), path)
    return entries


def save_catalog(path: str | Path, entries: Iterable[Entry]) -> Path:
    """Rebuild the nested document and write it once, creating parent dirs."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = unflatten(entries)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def provenance_path(catalog_path: str | Path) -> Path:
    """Sidecar file next to a target catalog: ``ja.json`` -> ``ja.provenance.json``."""
    catalog_path = Path(catalog_path)
    return catalog_path.with_name(f"{catalog_path.stem}.provenance.json")


def load_provenance(catalog_path: str | Path) -> dict[str, str]:
    """Read the provenance sidecar; an absent sidecar means no provenance."""
    path = provenance_path(catalog_path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Error parsing provenance file {path}: {e}")
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise ParseError(f"Provenance file {path} must map keys to source strings")
    return data


def attach_provenance(entries: list[Entry], provenance: Mapping[str, str]) -> list[Entry]:
    for entry in entries:
        entry.translated_from = provenance.get(entry.key, entry.translated_from)
    return entries


def save_provenance(catalog_path: str | Path, entries: Iterable[Entry]) -> Optional[Path]:
    """Write provenance for every entry that has it. Returns None if none do."""
    provenance = {e.key: e.translated_from for e in entries if e.translated_from is not None}
    path = provenance_path(catalog_path)
    if not provenance and not path.exists():
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(provenance, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def load_target(path: str | Path) -> list[Entry]:
    """Load a target catalog with its provenance attached."""
    return attach_provenance(load_catalog(path), load_provenance(path))


def read_translation_import(path: str | Path, fmt: str = "json") -> list[Entry]:
    """Read externally produced translations as flat entries.

    Formats:
        json: a flat ``{"key": "value"}`` object, or an array of
            ``{"key": ..., "value": ...}`` objects
        csv: ``key,value`` rows, no header

    Rows missing a key or a value are skipped with a warning.

    Raises:
        ConfigError: If the file does not exist
        ParseError: If the file cannot be parsed in the given format
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Import file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Import file {path} is not valid UTF-8: {e}")

    pairs: list[tuple[object, object]] = []
    if fmt == "json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Error parsing import file {path}: {e}")
        if isinstance(data, dict):
            pairs = list(data.items())
        elif isinstance(data, list):
            pairs = [
                (item.get("key"), item.get("value")) if isinstance(item, dict) else (None, None)
                for item in data
            ]
        else:
            raise ParseError(f"Import file {path} must contain a JSON object or array")
    elif fmt == "csv":
        for row in csv.reader(io.StringIO(content)):
            if not row or not any(cell.strip() for cell in row):
                continue
            cells = [cell.strip() for cell in row] + ["", ""]
            pairs.append((cells[0], cells[1]))
    else:
        raise ParseError(f"Unsupported translation import format: {fmt}")

    entries = []
    for key, value in pairs:
        if not key or value is None or value == "" or isinstance(value, (dict, list)):
            logger.warning("Skipping invalid import row: %r", (key, value))
            continue
        entries.append(Entry(key=str(key), value=str(value)))
    return entries
