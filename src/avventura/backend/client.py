"""Async client for the Avventura story backend.

The backend is the system of record for stories and game sessions. This
client only moves interchange data in and out; the graph model never calls it.

Endpoints used::

    GET  /steps/stories                  list stories
    GET  /steps/story/{story}            all steps of a story
    GET  /steps/{n}                      one step
    POST /steps/{story}/add-step         upsert one step
    POST /steps/{story}/update-full      replace every step
    POST /steps/create-story             create an empty story
    POST /games                          start a game
    GET  /games/{id}                     game state
    POST /games/{id}/next-step           move a game on
    GET  /games/session?token=...        game id for a session token
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import quote

import httpx

from avventura.graph.errors import SchemaError
from avventura.graph.interchange import dump_steps, parse_steps
from avventura.graph.story_graph import DEFAULT_START_STEP, StoryGraph
from avventura.graph.validation import validate_story_graph
from avventura.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from avventura.models.step import Step

log = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0

# Player stats the backend expects on a new game
_DEFAULT_PLAYER_STATS = {"age": 42, "force": 42, "intelligence": 42}


class BackendError(Exception):
    """Raised when the backend cannot be reached or answers with an error.

    Attributes:
        status_code: HTTP status, or None for transport failures.
        message: Error text from the response body when available.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        prefix = f"HTTP {status_code}: " if status_code is not None else ""
        super().__init__(f"{prefix}{message}")


@dataclass(frozen=True)
class StorySummary:
    """A story as listed by the backend."""

    name: str
    slug: str
    description: str = ""


@dataclass(frozen=True)
class GameState:
    """A game session as tracked by the backend."""

    game_id: int
    story: str
    current_step: int


def story_slug(name: str) -> str:
    """Slug the backend derives from a story name."""
    return re.sub(r"\s+", "-", name.lower())


class StoryStoreClient:
    """Client for the story backend.

    Use as an async context manager so the connection pool is closed::

        async with StoryStoreClient("http://localhost:3000") as client:
            graph = await client.fetch_graph("The Jade Island")
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body (None if empty).

        Raises:
            BackendError: On transport failure, non-2xx status, or a body
                that is not JSON.
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            log.error("backend_timeout", method=method, path=path)
            raise BackendError(f"Timed out calling {method} {path}") from e
        except httpx.RequestError as e:
            log.error("backend_unreachable", method=method, path=path, error=str(e))
            raise BackendError(f"Cannot reach backend at {self.base_url}: {e}") from e

        log.debug("backend_response", method=method, path=path, status=response.status_code)

        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError as e:
                if response.is_success:
                    raise BackendError(
                        f"Invalid JSON from {method} {path}", response.status_code
                    ) from e

        if not response.is_success:
            message = response.reason_phrase or "Request failed"
            if isinstance(body, dict):
                message = str(body.get("message") or body.get("error") or message)
            log.warning(
                "backend_error", method=method, path=path, status=response.status_code
            )
            raise BackendError(message, response.status_code)

        return body

    # -------------------------------------------------------------------------
    # Stories
    # -------------------------------------------------------------------------

    async def list_stories(self) -> list[StorySummary]:
        data = await self._request("GET", "/steps/stories")
        if not isinstance(data, list):
            raise SchemaError([f"expected a list of stories, got {type(data).__name__}"])
        return [
            StorySummary(
                name=str(item.get("name", "")),
                slug=str(item.get("slug", "")),
                description=str(item.get("description", "")),
            )
            for item in data
            if isinstance(item, dict)
        ]

    async def fetch_steps(self, story: str) -> list[Step]:
        """Fetch every step of *story*.

        Raises:
            BackendError: If the request fails.
            SchemaError: If the body is not a list of steps.
        """
        data = await self._request("GET", f"/steps/story/{quote(story, safe='')}")
        return parse_steps(data)

    async def fetch_graph(self, story: str, *, start_step: int = DEFAULT_START_STEP) -> StoryGraph:
        """Fetch *story* as a graph; duplicate step numbers are rejected."""
        steps = await self.fetch_steps(story)
        graph = StoryGraph.load(steps, start_step=start_step)
        log.info("story_fetched", story=story, steps=len(graph))
        return graph

    async def fetch_step(self, step_number: int) -> Step:
        data = await self._request("GET", f"/steps/{step_number}")
        return parse_steps([data])[0]

    async def add_step(self, story: str, step: Step) -> None:
        """Insert or replace one step of *story* on the backend."""
        await self._request(
            "POST", f"/steps/{quote(story, safe='')}/add-step", json=step.to_dict()
        )
        log.info("step_pushed", story=story, step=step.step)

    async def replace_steps(
        self,
        story: str,
        steps: StoryGraph | Iterable[Step],
        *,
        force: bool = False,
    ) -> Any:
        """Replace every step of *story*.

        A ``StoryGraph`` is validated first and refused if it has fatal
        defects, unless *force* is set.

        Raises:
            StoryValidationError: If the graph has fatal defects.
            BackendError: If the request fails.
        """
        if isinstance(steps, StoryGraph):
            if not force:
                validate_story_graph(steps, check_reachability=False).raise_for_fatal()
            payload = steps.to_dicts()
        else:
            payload = dump_steps(steps)

        body = await self._request(
            "POST", f"/steps/{quote(story, safe='')}/update-full", json={"steps": payload}
        )
        log.info("story_replaced", story=story, steps=len(payload))
        return body

    async def create_story(self, name: str) -> str:
        """Create an empty story and return its slug."""
        await self._request("POST", "/steps/create-story", json={"name": name})
        slug = story_slug(name)
        log.info("story_created", name=name, slug=slug)
        return slug

    # -------------------------------------------------------------------------
    # Games
    # -------------------------------------------------------------------------

    async def start_game(
        self,
        story: str,
        player_name: str,
        *,
        start_step: int = DEFAULT_START_STEP,
    ) -> GameState:
        """Start a single-player game of *story* at *start_step*."""
        body = {
            "story": story,
            "currentStep": start_step,
            "players": {
                "totalNumber": 1,
                "list": [{"name": player_name, **_DEFAULT_PLAYER_STATS}],
            },
        }
        # The games endpoint expects the game under a "body" key.
        data = await self._request("POST", "/games", json={"body": body})
        game_id = data.get("id", data.get("gameId", 0)) if isinstance(data, dict) else 0
        log.info("game_started", story=story, game_id=game_id)
        return GameState(game_id=int(game_id), story=story, current_step=start_step)

    async def get_game(self, game_id: int) -> GameState:
        data = await self._request("GET", f"/games/{game_id}")
        if not isinstance(data, dict) or not isinstance(data.get("currentStep"), int):
            raise SchemaError([f"game {game_id}: currentStep missing or not a number"])
        return GameState(
            game_id=game_id,
            story=str(data.get("story", "")),
            current_step=data["currentStep"],
        )

    async def advance_game(self, game_id: int, next_step: int) -> None:
        if next_step < 1:
            raise ValueError(f"next_step must be a positive step number, got {next_step}")
        await self._request("POST", f"/games/{game_id}/next-step", json={"nextStep": next_step})
        log.debug("game_advanced", game_id=game_id, next_step=next_step)

    async def game_id_for_session(self, token: str) -> int:
        """Resolve a session token to its game id.

        Raises:
            BackendError: If the request fails or the session has no game.
        """
        data = await self._request("GET", "/games/session", params={"token": token})
        game_id = data.get("gameId") if isinstance(data, dict) else None
        if not game_id:
            raise BackendError("Game ID not found in session data")
        return int(game_id)
