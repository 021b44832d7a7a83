"""Step number suggestions for authoring.

Numbers are chosen greedily: low, sequential and predictable, so authoring
tools that assume this scheme keep working. The same inputs always produce
the same numbers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from avventura.graph.validation import MAX_OPTIONS, MIN_OPTIONS

if TYPE_CHECKING:
    from collections.abc import Set

    from avventura.graph.story_graph import StoryGraph


def suggest_paths(existing_step_numbers: Set[int], current_step: int, count: int) -> list[int]:
    """Propose step numbers for new outgoing paths of *current_step*.

    The first candidate is ``current_step + 1``, bumped until it is free.
    Each following candidate starts one past the previous and is bumped
    until it collides with neither the existing steps nor this batch.

    Args:
        existing_step_numbers: Numbers already used in the story.
        current_step: Step the new paths leave from.
        count: How many numbers to propose (1 to 3).

    Returns:
        *count* strictly increasing numbers, none already in use.

    Raises:
        ValueError: If *count* is outside 1..3.

    Example:
        >>> suggest_paths({1, 2, 3, 5}, 3, 2)
        [4, 6]
    """
    if not MIN_OPTIONS <= count <= MAX_OPTIONS:
        raise ValueError(f"count must be between {MIN_OPTIONS} and {MAX_OPTIONS}, got {count}")

    chosen: list[int] = []
    candidate = current_step + 1
    while len(chosen) < count:
        while candidate in existing_step_numbers or candidate in chosen:
            candidate += 1
        chosen.append(candidate)
        candidate += 1
    return chosen


def suggest_paths_for(graph: StoryGraph, current_step: int, count: int) -> list[int]:
    """``suggest_paths`` over the numbers used in *graph*."""
    return suggest_paths(graph.all_step_numbers(), current_step, count)


def next_step_number(graph: StoryGraph) -> int:
    """Number offered for a brand-new step in the editor.

    One past the highest existing number, or 1 for an empty story.
    """
    return max(graph.all_step_numbers(), default=0) + 1


def continuation_start(graph: StoryGraph, selected_step: int) -> int:
    """First step number a generated continuation from *selected_step* may use."""
    return max(graph.all_step_numbers() | {selected_step}) + 1
