"""
Tests for API key storage and lookup.

The OS keychain is disabled so tests only touch a temporary config file.

Run with: pytest tests/test_keys.py -v
"""

import pytest

from jsontrans_llms.config import ConfigurationError
from jsontrans_llms.keys import KeyManager, env_var_for, resolve_provider_key


@pytest.fixture
def manager(tmp_path, monkeypatch):
    for var in ("PROVIDER_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    return KeyManager(config_dir=tmp_path, use_keyring=False)


class TestKeyManager:
    """Tests for the key lookup order and storage."""

    def test_env_var_names(self):
        assert env_var_for("provider") == "PROVIDER_KEY"
        assert env_var_for("openai") == "OPENAI_API_KEY"
        assert env_var_for("mistral") == "MISTRAL_API_KEY"

    def test_not_set(self, manager):
        assert manager.get_key("openai") is None
        info = manager.get_key_info("openai")
        assert not info.is_set
        assert info.source == "none"

    def test_set_uses_config_file(self, manager):
        assert manager.set_key("openai", "sk-config-key-123456") == "config"
        assert manager.get_key("openai") == "sk-config-key-123456"
        assert manager.get_key_info("openai").source == "config"
        assert manager.config_file.exists()

    def test_env_wins(self, manager, monkeypatch):
        manager.set_key("openai", "sk-config-key-123456")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env-key-7890abcd")
        info = manager.get_key_info("openai")
        assert info.source == "env"
        assert info.masked_value == "sk-e...abcd"

    def test_delete(self, manager):
        manager.set_key("anthropic", "key")
        assert manager.delete_key("anthropic")
        assert manager.get_key("anthropic") is None
        assert not manager.delete_key("anthropic")

    def test_list_keys(self, manager):
        services = [info.service for info in manager.list_keys()]
        assert services == ["provider", "openai", "anthropic", "google"]

    def test_mask_short_key(self):
        assert KeyManager._mask_key("short") == "*****"


class TestResolveProviderKey:
    """PROVIDER_KEY is preferred over provider-specific keys."""

    def test_provider_key_first(self, manager):
        manager.set_key("provider", "shared")
        manager.set_key("google", "google-only")
        assert resolve_provider_key("google", manager) == "shared"

    def test_falls_back_to_provider_specific(self, manager):
        manager.set_key("google", "google-only")
        assert resolve_provider_key("google", manager) == "google-only"

    def test_missing(self, manager):
        with pytest.raises(ConfigurationError) as exc:
            resolve_provider_key("openai", manager)
        assert "PROVIDER_KEY" in str(exc.value)
