"""Application configuration loading.

Resolution order, highest first:
1. Environment variables (``AVVENTURA_*``)
2. The file given with ``--config``
3. ``avventura.yaml`` in the working directory
4. ``~/.config/avventura/config.yaml``
5. Built-in defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from avventura.graph.story_graph import DEFAULT_START_STEP
from avventura.session import DEFAULT_SESSION_PATH

DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_PROVIDER = "anthropic"

PROJECT_CONFIG_NAME = "avventura.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "avventura" / "config.yaml"

_ENV_OVERRIDES = {
    "AVVENTURA_API_BASE_URL": "api_base_url",
    "AVVENTURA_PROVIDER": "provider",
    "AVVENTURA_MODEL": "model",
}


class ConfigError(Exception):
    """Raised when a configuration file cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


@dataclass
class AppConfig:
    """Settings shared by the CLI commands.

    Attributes:
        api_base_url: Root URL of the story backend.
        start_step: Step players begin at and endings loop back to.
        provider: LLM provider for generation.
        model: LLM model name; None uses the provider default.
        session_path: JSON file holding the player session.
        source: File the settings were read from, if any.
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    start_step: int = DEFAULT_START_STEP
    provider: str = DEFAULT_PROVIDER
    model: str | None = None
    session_path: Path = field(default_factory=lambda: DEFAULT_SESSION_PATH)
    source: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> AppConfig:
        """Create config from a parsed YAML mapping.

        Raises:
            ValueError: If a value has the wrong type.
        """
        backend = _section(data, "backend")
        llm = _section(data, "llm")
        story = _section(data, "story")

        start_step = story.get("start_step", DEFAULT_START_STEP)
        if not isinstance(start_step, int) or isinstance(start_step, bool) or start_step < 1:
            raise ValueError(f"story.start_step must be a positive integer, got {start_step!r}")

        session_path = data.get("session_path")
        return cls(
            api_base_url=str(backend.get("url", DEFAULT_API_BASE_URL)),
            start_step=start_step,
            provider=str(llm.get("provider", DEFAULT_PROVIDER)),
            model=llm.get("model"),
            session_path=Path(session_path).expanduser() if session_path else DEFAULT_SESSION_PATH,
            source=source,
        )

    def with_env_overrides(self) -> AppConfig:
        """Return a copy with ``AVVENTURA_*`` environment variables applied."""
        updates = {
            attr: value for var, attr in _ENV_OVERRIDES.items() if (value := os.getenv(var))
        }
        if not updates:
            return self
        values = {**self.__dict__, **updates}
        return AppConfig(**values)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


def _read_yaml(path: Path) -> dict[str, Any]:
    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except OSError as e:
        raise ConfigError(path, str(e)) from e
    except Exception as e:
        raise ConfigError(path, f"Invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(path, "Expected a mapping at the top level")
    return dict(data)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration.

    Args:
        path: Explicit config file. When None, the project file and then
            the user file are tried; missing files fall back to defaults.

    Returns:
        AppConfig with environment overrides applied.

    Raises:
        ConfigError: If a config file exists but cannot be read or parsed,
            or if *path* is given and does not exist.
    """
    if path is not None:
        if not path.exists():
            raise ConfigError(path, "File not found")
        candidates = [path]
    else:
        candidates = [Path.cwd() / PROJECT_CONFIG_NAME, USER_CONFIG_PATH]

    for candidate in candidates:
        if candidate.exists():
            data = _read_yaml(candidate)
            try:
                config = AppConfig.from_dict(data, source=candidate)
            except ValueError as e:
                raise ConfigError(candidate, str(e)) from e
            return config.with_env_overrides()

    return AppConfig().with_env_overrides()
