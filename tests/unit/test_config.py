"""Tests for application configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from avventura.config import (
    DEFAULT_API_BASE_URL,
    AppConfig,
    ConfigError,
    load_config,
)


class TestAppConfig:
    def test_defaults(self) -> None:
        config = AppConfig()
        assert config.api_base_url == "http://localhost:3000"
        assert config.start_step == 1
        assert config.provider == "anthropic"
        assert config.model is None

    def test_from_dict(self) -> None:
        data = {
            "backend": {"url": "http://stories.example:8080"},
            "llm": {"provider": "openai", "model": "gpt-4o"},
            "story": {"start_step": 10},
            "session_path": "~/avventura-session.json",
        }
        config = AppConfig.from_dict(data)

        assert config.api_base_url == "http://stories.example:8080"
        assert config.provider == "openai"
        assert config.model == "gpt-4o"
        assert config.start_step == 10
        assert config.session_path == Path("~/avventura-session.json").expanduser()

    @pytest.mark.parametrize("value", [0, "1", True])
    def test_bad_start_step(self, value: object) -> None:
        with pytest.raises(ValueError, match="start_step"):
            AppConfig.from_dict({"story": {"start_step": value}})

    @pytest.mark.parametrize("section", ["backend", "llm", "story"])
    def test_section_not_a_mapping(self, section: str) -> None:
        with pytest.raises(ValueError, match=f"{section} must be a mapping"):
            AppConfig.from_dict({section: "http://x"})

    def test_empty_sections(self) -> None:
        config = AppConfig.from_dict({"backend": None, "llm": None})
        assert config.api_base_url == DEFAULT_API_BASE_URL


class TestLoadConfig:
    def test_no_files_gives_defaults(self) -> None:
        config = load_config()
        assert config == AppConfig()

    def test_project_file(self, isolated_config: Path) -> None:
        (isolated_config / "avventura.yaml").write_text("backend:\n  url: http://project\n")

        config = load_config()

        assert config.api_base_url == "http://project"
        assert config.source == Path.cwd() / "avventura.yaml"

    def test_user_file(self, isolated_config: Path) -> None:
        (isolated_config / "config.yaml").write_text("llm:\n  provider: ollama\n")
        assert load_config().provider == "ollama"

    def test_project_file_wins(self, isolated_config: Path) -> None:
        (isolated_config / "config.yaml").write_text("llm:\n  provider: ollama\n")
        (isolated_config / "avventura.yaml").write_text("llm:\n  provider: google\n")
        assert load_config().provider == "google"

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("story:\n  start_step: 3\n")
        assert load_config(path).start_step == 3

    def test_explicit_path_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="File not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("backend: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert exc_info.value.path == path
        assert "Invalid YAML" in exc_info.value.reason

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_bad_value_wrapped(self, tmp_path: Path) -> None:
        path = tmp_path / "bad_step.yaml"
        path.write_text("story:\n  start_step: zero\n")
        with pytest.raises(ConfigError, match="start_step"):
            load_config(path)

    def test_scalar_section_wrapped(self, tmp_path: Path) -> None:
        path = tmp_path / "scalar.yaml"
        path.write_text("backend: http://x\n")
        with pytest.raises(ConfigError, match="backend must be a mapping"):
            load_config(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).api_base_url == DEFAULT_API_BASE_URL


class TestEnvOverrides:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("backend:\n  url: http://file\nllm:\n  provider: openai\n")
        monkeypatch.setenv("AVVENTURA_API_BASE_URL", "http://env")
        monkeypatch.setenv("AVVENTURA_MODEL", "gpt-4o")

        config = load_config(path)

        assert config.api_base_url == "http://env"
        assert config.provider == "openai"
        assert config.model == "gpt-4o"

    def test_env_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AVVENTURA_PROVIDER", "google")
        assert load_config().provider == "google"
