"""
Usage context from application source code.

Scans a source tree for ``t('some.key')`` calls so translators (and the
model) can see where and how a string is used.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

from i18n_app_translator.models import Entry

logger = logging.getLogger(__name__)

CODE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx")
TEXT_EXTENSIONS = CODE_EXTENSIONS + (
    ".vue", ".svelte", ".html", ".py", ".php", ".rb", ".java", ".go", ".cs",
)
EXCLUDED_DIRS = {"node_modules", "dist", "build", ".git", "vendor"}

_T_CALL_RE = re.compile(r"""\bt\(\s*['"]([^'"]+)['"]""")


def iter_source_files(source_dir: str | Path, extensions: Iterable[str]) -> Iterator[Path]:
    """Yield files under ``source_dir`` with a matching suffix, skipping vendored dirs."""
    root = Path(source_dir)
    suffixes = tuple(extensions)
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in suffixes:
            continue
        if EXCLUDED_DIRS.intersection(path.relative_to(root).parts):
            continue
        yield path


def extract_keys_from_source(
    source_dir: str | Path,
    extensions: Iterable[str] = CODE_EXTENSIONS,
) -> list[Entry]:
    """Find ``t('key')`` calls.

    Returns one entry per call site with an empty value and the
    relative file and 1-based line filled in.
    """
    root = Path(source_dir)
    entries: list[Entry] = []
    for path in iter_source_files(root, extensions):
        content = path.read_text(encoding="utf-8", errors="replace")
        relative = path.relative_to(root).as_posix()
        for match in _T_CALL_RE.finditer(content):
            entries.append(Entry(
                key=match.group(1),
                value="",
                source_file=relative,
                source_line=content.count("\n", 0, match.start()) + 1,
            ))
    logger.debug("Found %d key usages under %s", len(entries), root)
    return entries


@dataclass
class KeyUsage:
    file: str
    line_number: int
    snippet: str


@dataclass
class KeyContext:
    key: str
    usages: list[KeyUsage] = field(default_factory=list)

    def describe(self) -> Optional[str]:
        """Short usage hint for prompts, or None when the key was not found."""
        if not self.usages:
            return None
        first = self.usages[0]
        return f"used in {first.file}:{first.line_number}\n{first.snippet}"


class ContextExtractor:
    """Collect the lines surrounding each use of a key.

    Usage:
        extractor = ContextExtractor("src/")
        contexts = extractor.extract_context_for_keys(["home.title"])
        print(extractor.format_context(contexts))
    """

    def __init__(
        self,
        base_path: str | Path,
        context_lines: int = 2,
        extensions: Iterable[str] = TEXT_EXTENSIONS,
    ):
        self.base_path = Path(base_path)
        self.context_lines = context_lines
        self.extensions = tuple(extensions)

    def extract_context_for_keys(self, keys: Iterable[str]) -> dict[str, KeyContext]:
        keys = list(keys)
        contexts = {key: KeyContext(key) for key in keys}
        patterns = {key: re.compile(re.escape(key)) for key in keys}

        files = list(iter_source_files(self.base_path, self.extensions))
        logger.info("Extracting context for %d keys from %d files", len(keys), len(files))

        for path in files:
            try:
                lines = path.read_text(encoding="utf-8").split("\n")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Error reading %s: %s", path, e)
                continue
            relative = path.relative_to(self.base_path).as_posix()
            for key, pattern in patterns.items():
                for i, line in enumerate(lines):
                    if not pattern.search(line):
                        continue
                    start = max(0, i - self.context_lines)
                    end = min(len(lines), i + self.context_lines + 1)
                    contexts[key].usages.append(KeyUsage(
                        file=relative,
                        line_number=i + 1,
                        snippet="\n".join(lines[start:end]),
                    ))

        found = sum(1 for c in contexts.values() if c.usages)
        logger.info("Found usage context for %d/%d keys", found, len(keys))
        return contexts

    @staticmethod
    def format_context(contexts: dict[str, KeyContext], max_usages_per_key: int = 3) -> str:
        blocks = []
        for context in contexts.values():
            if not context.usages:
                blocks.append(f'Key "{context.key}" - no usage context found')
                continue
            lines = [f'Key "{context.key}" is used in:']
            for usage in context.usages[:max_usages_per_key]:
                snippet = usage.snippet.replace("\n", "\n  ")
                lines.append(f"- {usage.file}:{usage.line_number}\n  {snippet}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)
