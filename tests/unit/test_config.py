"""Unit tests for Settings and the YAML source seed loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from cardshow_scout.config.loader import load_source_seeds
from cardshow_scout.config.settings import Settings
from cardshow_scout.models.source import DEFAULT_PRIORITY
from cardshow_scout.utils.errors import ConfigurationError


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AI_TIMEOUT_MS", raising=False)
        settings = Settings(_env_file=None)
        assert settings.ai_timeout_ms == 15000
        assert settings.max_html_size == 15000
        assert settings.max_chunks == 5
        assert settings.worker_pool_size == 3

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_CHUNKS", "8")
        monkeypatch.setenv("WORKER_POOL_SIZE", "2")
        settings = Settings(_env_file=None)
        assert settings.max_chunks == 8
        assert settings.worker_pool_size == 2

    def test_available_providers(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="sk-test", anthropic_api_key="")
        assert settings.get_available_llm_providers() == ["openai"]

    def test_require_credentials_raises_without_keys(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="", anthropic_api_key="")
        with pytest.raises(ConfigurationError, match="No extraction endpoint"):
            settings.require_llm_credentials()

    def test_require_credentials_passes_with_anthropic(self) -> None:
        settings = Settings(_env_file=None, openai_api_key="", anthropic_api_key="sk-ant")
        settings.require_llm_credentials()


class TestLoadSourceSeeds:
    def test_loads_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text(
            "sources:\n"
            "  - url: https://a.example.com/\n"
            "    priority_score: 70\n"
            "  - url: https://b.example.com/\n"
            "    enabled: false\n"
            "    config:\n"
            "      state: IN\n"
            "  - https://c.example.com/\n"
        )
        seeds = load_source_seeds(path)

        assert [s.url for s in seeds] == [
            "https://a.example.com/",
            "https://b.example.com/",
            "https://c.example.com/",
        ]
        assert seeds[0].priority_score == 70
        assert seeds[1].enabled is False
        assert seeds[1].config == {"state": "IN"}
        assert seeds[2].priority_score == DEFAULT_PRIORITY

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_source_seeds(tmp_path / "nope.yaml")

    def test_bad_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text("sources: just-a-string\n")
        with pytest.raises(ConfigurationError, match="sources"):
            load_source_seeds(path)

    def test_invalid_priority(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text("sources:\n  - url: https://a.example.com/\n    priority_score: 250\n")
        with pytest.raises(ConfigurationError, match="invalid source entry"):
            load_source_seeds(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "sources.yaml"
        path.write_text("")
        assert load_source_seeds(path) == []
