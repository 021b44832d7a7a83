"""Player session context.

A session pairs a backend session token with the story being played and the
current step. It is created explicitly when a game starts, passed to whatever
needs it, and cleared explicitly on logout or reset. The backend owns the
authoritative game state; this is the client's persisted copy.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from avventura.graph.story_graph import DEFAULT_START_STEP
from avventura.observability.logging import get_logger

if TYPE_CHECKING:
    from avventura.graph.story_graph import StoryGraph
    from avventura.models.step import Step

log = get_logger(__name__)

DEFAULT_SESSION_PATH = Path.home() / ".config" / "avventura" / "session.json"

TOKEN_KEY = "avventuraSessionToken"
STORY_KEY = "avventuraStoryName"
STEP_KEY = "avventuraCurrentStep"


class SessionStore:
    """Persistent string-keyed store backed by one JSON file.

    Every write rewrites the whole file; there is one client per store.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_SESSION_PATH

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            log.warning("session_store_corrupt", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            log.warning("session_store_corrupt", path=str(self.path), error="not an object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


@dataclass
class SessionContext:
    """The session a player is in.

    Attributes:
        token: Backend session token.
        story_name: Story being played.
        current_step: Step the player is on.
    """

    token: str
    story_name: str
    current_step: int = DEFAULT_START_STEP

    @classmethod
    def start(
        cls,
        store: SessionStore,
        token: str,
        story_name: str,
        *,
        start_step: int = DEFAULT_START_STEP,
    ) -> SessionContext:
        """Begin a session and persist it, replacing any previous one."""
        if not token:
            raise ValueError("session token must not be empty")
        context = cls(token=token, story_name=story_name, current_step=start_step)
        context._save(store)
        log.info("session_started", story=story_name)
        return context

    @classmethod
    def resume(cls, store: SessionStore) -> SessionContext | None:
        """Return the persisted session, or None if there is none."""
        token = store.get(TOKEN_KEY)
        story_name = store.get(STORY_KEY)
        if not token or story_name is None:
            return None
        step_text = store.get(STEP_KEY)
        try:
            current_step = int(step_text) if step_text else DEFAULT_START_STEP
        except ValueError:
            log.warning("session_step_invalid", value=step_text)
            current_step = DEFAULT_START_STEP
        return cls(token=token, story_name=story_name, current_step=current_step)

    def _save(self, store: SessionStore) -> None:
        store.set(TOKEN_KEY, self.token)
        store.set(STORY_KEY, self.story_name)
        store.set(STEP_KEY, str(self.current_step))

    def current(self, graph: StoryGraph) -> Step:
        """Resolve the current step against *graph*.

        Raises:
            StepNotFoundError: If the story has no such step.
        """
        return graph.require(self.current_step, context=f"session for '{self.story_name}'")

    def advance(self, store: SessionStore, next_step: int, graph: StoryGraph | None = None) -> None:
        """Move to *next_step* and persist it.

        Args:
            store: Store to persist to.
            next_step: The step chosen.
            graph: When given, *next_step* must exist in it.

        Raises:
            StepNotFoundError: If *graph* is given and lacks *next_step*.
        """
        if graph is not None:
            graph.require(next_step, context="advance")
        self.current_step = next_step
        store.set(STEP_KEY, str(next_step))
        log.debug("session_advanced", story=self.story_name, step=next_step)

    def clear(self, store: SessionStore) -> None:
        """End the session and remove it from *store*."""
        for key in (TOKEN_KEY, STORY_KEY, STEP_KEY):
            store.delete(key)
        log.info("session_cleared", story=self.story_name)
