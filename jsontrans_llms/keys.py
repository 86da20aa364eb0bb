"""
API key management for JSONTrans-LLMs.

Keys are looked up in order:
1. Environment variables (preferred for CI and .env files)
2. OS keychain via keyring (secure local storage)
3. Local config file (~/.jsontrans/keys.json)

The ``provider`` service maps to ``PROVIDER_KEY``, the single key the sync
command uses for every model. Provider-specific services are consulted when
``PROVIDER_KEY`` is not configured.

Usage:
    from jsontrans_llms.keys import KeyManager

    km = KeyManager()
    km.set_key("provider", "sk-...")
    key = km.get_key("provider")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from jsontrans_llms.config import ENV_PROVIDER_KEY, ConfigurationError

logger = logging.getLogger(__name__)


# Supported services and their env var names
SERVICES = {
    "provider": ENV_PROVIDER_KEY,
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}


@dataclass
class KeyInfo:
    """Information about an API key."""
    service: str
    is_set: bool
    source: str  # 'env', 'keyring', 'config', 'none'
    masked_value: str  # e.g., "sk-p...abcd"


def env_var_for(service: str) -> str:
    return SERVICES.get(service, f"{service.upper()}_API_KEY")


class KeyManager:
    """Manage API keys.

    Priority order for key retrieval:
    1. Environment variable
    2. OS keychain (via keyring)
    3. Local config file
    """

    SERVICE_NAME = "JSONTrans-LLMs"

    def __init__(self, config_dir: Optional[Path] = None, use_keyring: bool = True):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".jsontrans"
        self.config_file = self.config_dir / "keys.json"
        self._keyring_available = use_keyring and self._check_keyring()

    def _check_keyring(self) -> bool:
        try:
            backend = keyring.get_keyring()
        except KeyringError:
            return False
        # The fail backend raises on every call; treat it as "no keychain"
        return backend.priority > 0

    def _read_config(self) -> dict:
        if not self.config_file.exists():
            return {}
        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable key file %s: %s", self.config_file, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_config(self, config: dict) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")
        self.config_file.chmod(0o600)  # Restrict permissions

    def _from_keyring(self, service: str) -> Optional[str]:
        if not self._keyring_available:
            return None
        try:
            return keyring.get_password(self.SERVICE_NAME, service)
        except KeyringError as e:
            logger.debug("Keyring lookup for %s failed: %s", service, e)
            return None

    def _lookup(self, service: str) -> tuple[Optional[str], str]:
        service = service.lower()
        if env_val := os.getenv(env_var_for(service)):
            return env_val, "env"
        if key := self._from_keyring(service):
            return key, "keyring"
        if key := self._read_config().get(service):
            return key, "config"
        return None, "none"

    def get_key(self, service: str) -> Optional[str]:
        """Get API key for a service, or None if it is not configured."""
        return self._lookup(service)[0]

    def set_key(self, service: str, key: str, use_keyring: bool = True) -> str:
        """Store API key for a service.

        Returns:
            Storage location used ('keyring' or 'config')
        """
        service = service.lower()

        if use_keyring and self._keyring_available:
            try:
                keyring.set_password(self.SERVICE_NAME, service, key)
                return "keyring"
            except KeyringError as e:
                logger.warning("Could not store key in keychain (%s), using config file", e)

        config = self._read_config()
        config[service] = key
        self._write_config(config)
        return "config"

    def delete_key(self, service: str) -> bool:
        """Delete stored API key for a service. Environment variables are untouched."""
        service = service.lower()
        deleted = False

        if self._keyring_available:
            try:
                keyring.delete_password(self.SERVICE_NAME, service)
                deleted = True
            except PasswordDeleteError:
                pass  # nothing stored
            except KeyringError as e:
                logger.warning("Could not delete key from keychain: %s", e)

        config = self._read_config()
        if service in config:
            del config[service]
            self._write_config(config)
            deleted = True

        return deleted

    def get_key_info(self, service: str) -> KeyInfo:
        key, source = self._lookup(service)
        return KeyInfo(
            service=service.lower(),
            is_set=key is not None,
            source=source,
            masked_value=self._mask_key(key) if key else "",
        )

    def list_keys(self) -> list[KeyInfo]:
        """List all known services and their key status."""
        return [self.get_key_info(service) for service in SERVICES]

    @staticmethod
    def _mask_key(key: str) -> str:
        """Mask a key for display (show first 4 and last 4 chars)."""
        if len(key) <= 12:
            return "*" * len(key)
        return f"{key[:4]}...{key[-4:]}"


def resolve_provider_key(provider: str, manager: Optional[KeyManager] = None) -> str:
    """Key for ``provider``: PROVIDER_KEY first, then the provider's own key.

    Raises:
        ConfigurationError: If neither is configured
    """
    manager = manager or KeyManager()
    key = manager.get_key("provider") or manager.get_key(provider)
    if not key:
        raise ConfigurationError(
            f"API key for '{provider}' not found. Set {ENV_PROVIDER_KEY} "
            f"(or {env_var_for(provider)}) or run: jsontrans keys set provider"
        )
    return key
