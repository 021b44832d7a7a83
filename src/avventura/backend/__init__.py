"""Client for the external story and game backend."""

from avventura.backend.client import (
    BackendError,
    GameState,
    StoryStoreClient,
    StorySummary,
    story_slug,
)

__all__ = [
    "BackendError",
    "GameState",
    "StoryStoreClient",
    "StorySummary",
    "story_slug",
]
