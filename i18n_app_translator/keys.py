"""
API key management for i18n-app-translator.

Provides storage and retrieval of provider API keys using:
1. Environment variables (preferred for CI/production)
2. OS keychain via keyring (secure local storage)
3. Local key file (fallback)

Usage:
    from i18n_app_translator.keys import KeyManager

    km = KeyManager()
    km.set_key("openai", "sk-...")
    key = km.get_key("openai")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

# Supported services and their env var names
SERVICES = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


@dataclass
class KeyInfo:
    """Information about an API key."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'file', 'none'
    masked_value: str  # e.g., "sk-p...abcd"


class KeyManager:
    """Manage provider API keys.

    Priority order for key retrieval:
    1. Environment variable
    2. OS keychain (via keyring)
    3. Local key file (~/.i18n-app-translator/keys.json)
    """

    SERVICE_NAME = "i18n-app-translator"
    DEFAULT_KEY_FILE = Path.home() / ".i18n-app-translator" / "keys.json"

    def __init__(
        self,
        key_file: Optional[Path] = None,
        use_keyring: bool = True,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.key_file = Path(key_file) if key_file else self.DEFAULT_KEY_FILE
        self.use_keyring = use_keyring
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @staticmethod
    def env_var(service: str) -> str:
        service = service.lower()
        return SERVICES.get(service, f"{service.upper()}_API_KEY")

    def _read_key_file(self) -> dict[str, str]:
        if not self.key_file.exists():
            return {}
        try:
            data = json.loads(self.key_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable key file %s: %s", self.key_file, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _keyring_get(self, service: str) -> Optional[str]:
        if not self.use_keyring:
            return None
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring unavailable for %s: %s", service, e)
            return None

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()

        if env_val := self.environ.get(self.env_var(service)):
            return env_val, "env"
        if key := self._keyring_get(service):
            return key, "keyring"
        if key := self._read_key_file().get(service):
            return key, "file"
        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get API key for a service, or None if not found."""
        return self._lookup(service)[0]

    def set_key(self, service: str, key: str) -> str:
        """Store API key for a service.

        Returns:
            Storage location used ('keyring' or 'file')
        """
        service = service.lower()

        if self.use_keyring:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.warning("Keyring unavailable, falling back to key file: %s", e)

        self.key_file.parent.mkdir(parents=True, exist_ok=True)
        data = self._read_key_file()
        data[service] = key
        self.key_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self.key_file.chmod(0o600)
        return "file"

    def delete_key(self, service: str) -> bool:
        """Delete a stored key from keyring and key file."""
        service = service.lower()
        deleted = False

        if self.use_keyring:
            try:
                keyring.delete_password(self.SERVICE_NAME, service)
                deleted = True
            except KeyringError as e:
                logger.debug("No keyring entry deleted for %s: %s", service, e)

        data = self._read_key_file()
        if service in data:
            del data[service]
            self.key_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self.mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        return [self.get_key_info(service) for service in SERVICES]

    @staticmethod
    def mask_key(key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"
