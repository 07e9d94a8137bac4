"""
Glossary module for terminology control.

This module handles:
- Loading and saving the glossary store (a JSON array of entries)
- Case-insensitive upsert / removal / lookup of terms
- Projecting a language-scoped term map for prompt construction
- Reading glossary import files (JSON or CSV)

Design Philosophy:
- A term is unique case-insensitively; upserts merge translation maps
  instead of replacing the whole entry
- A missing store file is bootstrapped empty, not an error
- Read/write errors propagate; the drivers decide to run without a glossary
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional

from i18n_app_translator.errors import Outcome, ParseError

logger = logging.getLogger(__name__)


@dataclass
class GlossaryEntry:
    """A term with its translations per language code.

    Attributes:
        term: Source-language term (unique, case-insensitive)
        translations: Language code -> translated term
        context: Optional usage context
        notes: Optional notes for translators
    """
    term: str
    translations: dict[str, str] = field(default_factory=dict)
    context: Optional[str] = None
    notes: Optional[str] = None

    @property
    def term_lower(self) -> str:
        return self.term.lower()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"term": self.term, "translations": dict(self.translations)}
        if self.context:
            data["context"] = self.context
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "GlossaryEntry":
        if not isinstance(data, dict) or not isinstance(data.get("term"), str):
            raise ParseError(f"Invalid glossary entry: {data!r}")
        translations = data.get("translations") or {}
        if not isinstance(translations, dict):
            raise ParseError(f"Invalid translations for term '{data['term']}'")
        return cls(
            term=data["term"],
            translations={str(k): str(v) for k, v in translations.items()},
            context=data.get("context"),
            notes=data.get("notes"),
        )


class GlossaryStore:
    """Persistent, case-insensitive term -> per-language translation store.

    Usage:
        store = GlossaryStore("glossary.json")
        store.load()
        store.upsert(GlossaryEntry("Wallet", {"ja": "ウォレット"}))
        store.save()
        terms = store.entries_for_language("ja")
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: list[GlossaryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[GlossaryEntry]:
        return iter(list(self._entries))

    def load(self) -> None:
        """Read the store, creating an empty one if it does not exist."""
        if not self.path.exists():
            logger.warning("Glossary file not found at %s. Creating a new glossary.", self.path)
            self._entries = []
            self.save()
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"Error loading glossary {self.path}: {e}")
        if not isinstance(data, list):
            raise ParseError(f"Glossary {self.path} must contain a JSON array")

        self._entries = []
        for item in data:
            self.upsert(GlossaryEntry.from_dict(item))
        logger.debug("Loaded %d glossary entries from %s", len(self._entries), self.path)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [entry.to_dict() for entry in self._entries]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def _index_of(self, term: str) -> int:
        term_lower = term.lower()
        for i, entry in enumerate(self._entries):
            if entry.term_lower == term_lower:
                return i
        return -1

    def upsert(self, entry: GlossaryEntry) -> None:
        """Add a term, or merge into the existing one.

        New translations win on conflict; context and notes are only
        overwritten when the incoming entry provides them.
        """
        index = self._index_of(entry.term)
        if index < 0:
            self._entries.append(GlossaryEntry(
                term=entry.term,
                translations=dict(entry.translations),
                context=entry.context,
                notes=entry.notes,
            ))
            return

        existing = self._entries[index]
        merged = dict(existing.translations)
        merged.update(entry.translations)
        self._entries[index] = GlossaryEntry(
            term=existing.term,
            translations=merged,
            context=entry.context if entry.context else existing.context,
            notes=entry.notes if entry.notes else existing.notes,
        )

    # Name used by the import flow
    add_entry = upsert

    def remove(self, term: str) -> bool:
        index = self._index_of(term)
        if index < 0:
            return False
        del self._entries[index]
        return True

    def find_term(self, term: str) -> Optional[GlossaryEntry]:
        index = self._index_of(term)
        return self._entries[index] if index >= 0 else None

    def all_entries(self) -> list[GlossaryEntry]:
        return list(self._entries)

    def entries_for_language(self, language: str) -> dict[str, str]:
        """Term -> translation for every entry translated into ``language``."""
        return {
            entry.term: entry.translations[language]
            for entry in self._entries
            if entry.translations.get(language)
        }

    def try_entries_for_language(self, language: str) -> Outcome[dict[str, str]]:
        try:
            return Outcome.success(self.entries_for_language(language))
        except Exception as e:
            return Outcome.failure(e)

    def search(self, text: str) -> list[GlossaryEntry]:
        """Case-insensitive substring match on terms and translations."""
        needle = text.lower()
        return [
            entry for entry in self._entries
            if needle in entry.term_lower
            or any(needle in value.lower() for value in entry.translations.values())
        ]

    def languages(self) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self._entries:
            for language in entry.translations:
                seen.setdefault(language, None)
        return list(seen)


# ============================================================================
# Import files
# ============================================================================

@dataclass
class GlossaryImportRow:
    term: str
    translation: str
    context: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.term and self.translation)


def read_glossary_import(path: str | Path, fmt: str = "json") -> list[GlossaryImportRow]:
    """Read a glossary import file.

    Formats:
        json: ``[{"term": ..., "translation": ..., "context"?: ..., "notes"?: ...}]``
        csv: ``term,translation[,context][,notes]`` rows, no header

    Rows are returned as-is; callers skip the invalid ones.

    Raises:
        ParseError: If the file cannot be parsed in the given format
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Glossary import {path} is not valid UTF-8: {e}")

    if fmt == "json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Error parsing glossary import {path}: {e}")
        if not isinstance(data, list):
            raise ParseError(f"Glossary import {path} must contain a JSON array")
        rows = []
        for item in data:
            if not isinstance(item, dict):
                rows.append(GlossaryImportRow("", ""))
                continue
            rows.append(GlossaryImportRow(
                term=str(item.get("term") or "").strip(),
                translation=str(item.get("translation") or "").strip(),
                context=item.get("context") or None,
                notes=item.get("notes") or None,
            ))
        return rows

    if fmt == "csv":
        rows = []
        for row in csv.reader(io.StringIO(content)):
            if not row or not any(cell.strip() for cell in row):
                continue
            cells = [cell.strip() for cell in row] + ["", "", "", ""]
            rows.append(GlossaryImportRow(
                term=cells[0],
                translation=cells[1],
                context=cells[2] or None,
                notes=cells[3] or None,
            ))
        return rows

    raise ParseError(f"Unsupported glossary import format: {fmt}")
