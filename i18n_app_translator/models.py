"""
Core data models for i18n-app-translator.

This module defines the data structures that flow through the system:
- Entry: one flattened (key, value) unit of a catalog
- DiffResult: classification of source keys against a target catalog
- TranslationResult: the output of translating or reviewing one entry
- SimilarTranslation / SimilarityRecord: similarity index payloads
- BatchProgress: transient counters for one batch call

Design Philosophy:
- Entries are plain mutable dataclasses; catalogs are flat ordered lists
  of entries while in memory and nested dicts only at the storage edge
- Results carry no backend-specific metadata
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

# Nested key -> string document for one language
Catalog = Dict[str, Union[str, "Catalog"]]


@dataclass
class Entry:
    """A single catalog entry.

    Attributes:
        key: Dot-joined path identifying the entry (unique within a catalog)
        value: Current text
        context: Usage hint ("button label", "heading", ...)
        source_file: File in which the key is used (from code scanning)
        source_line: 1-based line of that usage
        translated_from: Source text this value was produced from, if known
    """
    key: str
    value: str
    context: Optional[str] = None
    source_file: Optional[str] = None
    source_line: Optional[int] = None
    translated_from: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key, "value": self.value}
        for name in ("context", "source_file", "source_line", "translated_from"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass
class OutdatedPair:
    """A key whose source text changed since the target was produced."""
    source: Entry
    target: Entry


@dataclass
class DiffResult:
    """Classification of every source entry against a target catalog.

    Each source key lands in exactly one of the three lists.
    """
    missing: list[Entry] = field(default_factory=list)
    outdated: list[OutdatedPair] = field(default_factory=list)
    unchanged: list[Entry] = field(default_factory=list)

    @property
    def has_work(self) -> bool:
        return bool(self.missing or self.outdated)


@dataclass
class TranslationResult:
    """Result of one orchestration step.

    Attributes:
        original: Source text that was translated or reviewed
        translated: Resulting target text
        is_new: True for a first translation, False for a review
        changes: Human-readable summary of review edits
    """
    original: str
    translated: str
    is_new: bool
    changes: Optional[str] = None


@dataclass
class SimilarTranslation:
    """A prior translation returned by the similarity index."""
    source: str
    translation: str
    similarity: float


@dataclass
class SimilarityRecord:
    """What the similarity index stores for one (language, source) pair."""
    source_text: str
    translation: str
    language: str
    context: str = "unknown"


@dataclass
class BatchProgress:
    """Counters for a single batch call. Never persisted."""
    total: int
    completed: int = 0
    window: int = 0
    total_windows: int = 0
    succeeded: Dict[str, TranslationResult] = field(default_factory=dict)
    failed_keys: set[str] = field(default_factory=set)

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return self.completed / self.total * 100

    def record_success(self, key: str, result: TranslationResult) -> None:
        self.succeeded[key] = result
        self.completed += 1

    def record_failure(self, key: str) -> None:
        self.failed_keys.add(key)
        self.completed += 1
