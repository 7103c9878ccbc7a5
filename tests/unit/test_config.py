"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from autoreply.config.loader import load_config
from autoreply.config.settings import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.chunk_size == 1200
        assert settings.chunk_overlap == 100
        assert settings.chunk_unit == "characters"
        assert settings.reply_top_k == 5
        assert settings.retrieval_candidate_window == 500

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "400")
        monkeypatch.setenv("REPLY_MAX_WORKERS", "8")
        settings = Settings(_env_file=None)
        assert settings.chunk_size == 400
        assert settings.reply_max_workers == 8

    def test_available_providers(self) -> None:
        assert Settings(_env_file=None, openai_api_key="", webhook_verify_token="").get_available_providers() == []
        settings = Settings(_env_file=None, openai_api_key="sk", webhook_verify_token="v")
        assert settings.get_available_providers() == ["openai", "graph_api_webhook"]


class TestLoadConfig:
    def test_yaml_merged_with_settings(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "app:\n  name: autoreply\n  version: 9.9.9\n"
            "reply:\n  max_sentences: 3\n"
            "chunking:\n  size: 1\n"
        )
        settings = Settings(_env_file=None, chunk_size=800, app_port=9000)

        config = load_config(str(path), settings=settings)

        assert config["app"]["name"] == "autoreply"
        assert config["app"]["version"] == "9.9.9"
        assert config["app"]["port"] == 9000
        assert config["reply"]["max_sentences"] == 3
        assert config["chunking"]["size"] == 800
        assert config["pipeline"]["timeouts"]["delivery"] == settings.delivery_timeout_seconds

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=Settings(_env_file=None))
        assert "reply" not in config
        assert config["retrieval"]["reply_top_k"] == 5

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        config = load_config(str(path), settings=Settings(_env_file=None))
        assert config["logging"]["level"] == "INFO"
