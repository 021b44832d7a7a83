"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from avventura.graph import StoryGraph

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the user's config, session and environment.

    Runs every test in an empty working directory with no user config file
    and no ``AVVENTURA_*`` overrides.
    """
    home = tmp_path_factory.mktemp("home")
    monkeypatch.chdir(home)
    monkeypatch.setattr("avventura.config.USER_CONFIG_PATH", home / "config.yaml")
    monkeypatch.setattr("avventura.session.DEFAULT_SESSION_PATH", home / "session.json")
    for var in (
        "AVVENTURA_API_BASE_URL",
        "AVVENTURA_PROVIDER",
        "AVVENTURA_MODEL",
        "AVVENTURA_CONFIG",
        "AVVENTURA_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def jade_island_steps() -> list[dict[str, Any]]:
    """A small, valid story: two branches, two endings looping to step 1."""
    return [
        {
            "step": 1,
            "desc": "You wake on a beach of black sand.",
            "options": ["Explore the jungle", "Walk the shore"],
            "paths": [2, 3],
        },
        {
            "step": 2,
            "desc": "Vines choke a path towards a ruined temple.",
            "options": ["Climb the temple", "Follow the river"],
            "paths": [4, 5],
        },
        {
            "step": 3,
            "desc": "A wrecked ship lies on its side in the surf.",
            "options": ["Board the wreck", "Head inland"],
            "paths": [5, 2],
        },
        {
            "step": 4,
            "desc": "The jade idol is yours. The island sinks behind you.",
            "options": ["Play again"],
            "paths": [1],
        },
        {
            "step": 5,
            "desc": "The tide takes you. The end.",
            "options": ["Play again"],
            "paths": [1],
        },
    ]


@pytest.fixture
def jade_island(jade_island_steps: list[dict[str, Any]]) -> StoryGraph:
    return StoryGraph.load(jade_island_steps)


@pytest.fixture
def story_file(tmp_path: Path, jade_island_steps: list[dict[str, Any]]) -> Path:
    """The jade island story written as interchange JSON."""
    path = tmp_path / "jade_island.json"
    path.write_text(json.dumps(jade_island_steps), encoding="utf-8")
    return path
