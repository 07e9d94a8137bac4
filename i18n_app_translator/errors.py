"""
Error taxonomy for i18n-app-translator.

The gateways never terminate the process. They raise one of the typed
errors below and the caller decides what to do with it:

- ConfigError / ParseError: fatal, surfaced by the CLI as a non-zero exit
- BackendError: similarity index trouble, degraded at the call site
- GenerationError: generation backend trouble, isolated per entry

Best-effort side calls return an ``Outcome`` instead of raising so the
orchestrator can substitute its fallback value explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class TranslatorError(Exception):
    """Base class for all errors raised by the translator."""

    exit_code: int = 1

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigError(TranslatorError):
    """Missing credentials, run parameters or input files."""


class ParseError(TranslatorError):
    """A catalog or glossary document is structurally invalid."""


class BackendError(TranslatorError):
    """The similarity index failed to store or query."""


class BackendUnavailable(BackendError):
    """The similarity index could not be initialised or reached."""


class GenerationError(TranslatorError):
    """The generation or embedding backend failed (network, auth, timeout)."""


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a best-effort gateway call.

    Exactly one of ``value``/``error`` is meaningful, as told by ``ok``.

    Usage:
        outcome = await index.try_find_similar("Save", "ja", 3)
        similar = outcome.unwrap_or([])
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Outcome[T]":
        return cls(ok=False, error=error)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default
