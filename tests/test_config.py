"""Tests for configuration loading."""

import json

import pytest

from i18n_app_translator.config import AppConfig, load_config, merge_config, save_config
from i18n_app_translator.errors import ConfigError


class TestDefaults:
    def test_default_values(self):
        config = AppConfig()

        assert config.translation.concurrency == 5
        assert config.translation.similar_translations_limit == 3
        assert config.translation.scheduling == "window"
        assert config.generation.temperature == 0.2
        assert config.glossary.path == "glossary.json"
        assert config.vector_db.provider == "local"

    def test_to_dict_never_contains_api_key(self):
        config = AppConfig()
        config.generation.api_key = "sk-secret"

        assert "api_key" not in config.to_dict()["generation"]


class TestLoadConfig:
    """File + environment layering."""

    def test_missing_default_file_is_fine(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={})

        assert config.translation.concurrency == 5

    def test_missing_explicit_file_is_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "custom.rc", environ={})

    def test_rc_file_is_deep_merged(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".i18n-app-translatorrc").write_text(json.dumps({
            "translation": {"concurrency": 2},
            "vectorDB": {"ignored": True},
            "glossary": {"unknown_key": 1},
        }), encoding="utf-8")

        config = load_config(environ={})

        assert config.translation.concurrency == 2
        assert config.translation.show_progress is True
        assert config.glossary.path == "glossary.json"

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.rc"
        path.write_text("{nope", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.rc"
        path.write_text(json.dumps({"translation": {"scheduling": "bogus"}}), encoding="utf-8")

        with pytest.raises(ConfigError, match="scheduling"):
            load_config(path, environ={})

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={
            "TRANSLATION_LLM": "gpt-4o-mini",
            "EMBEDDING_LLM": "text-embedding-3-large",
            "I18N_TRANSLATOR_PROVIDER": "deepseek",
        })

        assert config.generation.model == "gpt-4o-mini"
        assert config.generation.embedding_model == "text-embedding-3-large"
        assert config.generation.provider == "deepseek"

    def test_mock_mode(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(environ={"MOCK_MODE": "true"})

        assert config.generation.provider == "mock"
        assert config.generation.embedding_provider == "mock"


class TestValidate:
    @pytest.mark.parametrize("section,key,value", [
        ("translation", "concurrency", 0),
        ("translation", "timeout", 0),
        ("translation", "similar_translations_limit", -1),
        ("vector_db", "provider", "chroma"),
        ("generation", "provider", "unknown"),
    ])
    def test_rejects(self, section, key, value):
        config = merge_config(AppConfig(), {section: {key: value}})

        with pytest.raises(ConfigError):
            config.validate()


def test_save_and_reload(tmp_path):
    config = AppConfig()
    config.translation.concurrency = 9
    path = save_config(config, tmp_path / "saved.rc")

    assert load_config(path, environ={}).translation.concurrency == 9
