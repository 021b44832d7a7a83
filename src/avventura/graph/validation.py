"""Structural validation for story graphs.

Pure, deterministic checks over a ``StoryGraph``. Validation reports defects
and never changes the graph; ``redirect_dangling_paths`` is the one explicit,
logged remediation a caller may choose instead of rejecting the story.

Checks:
- Per step: options/paths arity, option count, dangling paths, ending loops
- Graph-wide: start step present, steps with no way in

Cycles are normal (every ending loops back to the start), so nothing here
assumes a DAG.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from avventura.graph.validation_types import (
    ArityMismatchError,
    DanglingPathError,
    EndingNotLoopedError,
    MissingStartStepError,
    OptionCountError,
    StoryDefect,
    UnreachableStepWarning,
    ValidationReport,
)
from avventura.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection

    from avventura.graph.story_graph import StoryGraph

log = get_logger(__name__)

MIN_OPTIONS = 1
MAX_OPTIONS = 3

__all__ = [
    "MAX_OPTIONS",
    "MIN_OPTIONS",
    "PathRedirect",
    "check_arity",
    "check_dangling_paths",
    "check_endings_looped",
    "check_option_count",
    "check_start_step",
    "check_unreachable_steps",
    "redirect_dangling_paths",
    "validate_story_graph",
]


def check_arity(graph: StoryGraph) -> list[StoryDefect]:
    """Every step must have exactly one path per option."""
    defects: list[StoryDefect] = []
    for step in graph.serialize():
        if len(step.options) != len(step.paths):
            defects.append(ArityMismatchError(step.step, len(step.options), len(step.paths)))
    return defects


def check_option_count(graph: StoryGraph) -> list[StoryDefect]:
    """Every step must offer between one and three options."""
    defects: list[StoryDefect] = []
    for step in graph.serialize():
        count = len(step.options)
        if not MIN_OPTIONS <= count <= MAX_OPTIONS:
            defects.append(OptionCountError(step.step, count))
    return defects


def check_dangling_paths(graph: StoryGraph) -> list[StoryDefect]:
    """Every path must name an existing step."""
    existing = graph.all_step_numbers()
    available = sorted(existing)
    defects: list[StoryDefect] = []
    for step in graph.serialize():
        for index, target in enumerate(step.paths):
            if target not in existing:
                defects.append(DanglingPathError(step.step, index, target, available))
    return defects


def check_endings_looped(graph: StoryGraph, start_step: int) -> list[StoryDefect]:
    """A one-option step is an ending and should lead back to the start."""
    defects: list[StoryDefect] = []
    for step in graph.serialize():
        if not step.is_ending or len(step.paths) != 1:
            continue
        target = step.paths[0]
        if target != start_step:
            defects.append(EndingNotLoopedError(step.step, target, start_step))
    return defects


def check_start_step(graph: StoryGraph, start_step: int) -> list[StoryDefect]:
    """A non-empty story must contain its start step."""
    if len(graph) and start_step not in graph:
        return [MissingStartStepError(start_step)]
    return []


def check_unreachable_steps(graph: StoryGraph, start_step: int) -> list[StoryDefect]:
    """Flag steps that no other step leads to.

    Advisory: authors often write a step before wiring it in.
    """
    defects: list[StoryDefect] = []
    for number, sources in sorted(graph.incoming().items()):
        if number != start_step and not sources:
            defects.append(UnreachableStepWarning(number))
    return defects


def validate_story_graph(
    graph: StoryGraph,
    *,
    start_step: int | None = None,
    check_reachability: bool = True,
) -> ValidationReport:
    """Run every structural check and collect the defects.

    Per-step defects come first, in ascending step order and, within a
    step, in check order (arity, option count, paths, ending). Graph-wide
    defects follow.

    Args:
        graph: The story to check.
        start_step: Start step number. Defaults to ``graph.start_step``.
        check_reachability: Include the advisory unreachable-step check.

    Returns:
        Report with every defect found. Never raises for bad data.
    """
    start = graph.start_step if start_step is None else start_step

    per_step: list[StoryDefect] = []
    per_step.extend(check_arity(graph))
    per_step.extend(check_option_count(graph))
    per_step.extend(check_dangling_paths(graph))
    per_step.extend(check_endings_looped(graph, start))

    # sorted() is stable, so check order survives within a step
    defects = sorted(per_step, key=lambda d: d.step)
    defects.extend(check_start_step(graph, start))
    if check_reachability:
        defects.extend(check_unreachable_steps(graph, start))

    report = ValidationReport(defects)
    if report.defects:
        log.info(
            "story_graph_validated",
            steps=len(graph),
            fatal=len(report.fatal),
            warnings=len(report.warnings),
        )
    else:
        log.debug("story_graph_validated", steps=len(graph), fatal=0, warnings=0)
    return report


@dataclass(frozen=True)
class PathRedirect:
    """One dangling path rewritten to the start step."""

    step: int
    index: int
    old_target: int
    new_target: int


def redirect_dangling_paths(
    graph: StoryGraph,
    *,
    start_step: int | None = None,
    only: Collection[int] | None = None,
) -> list[PathRedirect]:
    """Rewrite every dangling path to the start step.

    This is the "return to start" remediation. It mutates *graph* and logs
    one warning per rewrite; call it only when the author has asked for it.

    Args:
        graph: Graph to repair in place.
        start_step: Redirect target. Defaults to ``graph.start_step``.
        only: Restrict the repair to these step numbers.

    Returns:
        The redirects applied, in step order.
    """
    target_step = graph.start_step if start_step is None else start_step
    existing = graph.all_step_numbers()
    redirects: list[PathRedirect] = []

    for step in graph.serialize():
        if only is not None and step.step not in only:
            continue
        new_paths = list(step.paths)
        for index, target in enumerate(step.paths):
            if target in existing:
                continue
            new_paths[index] = target_step
            redirect = PathRedirect(step.step, index, target, target_step)
            redirects.append(redirect)
            log.warning(
                "dangling_path_redirected",
                step=step.step,
                index=index,
                old_target=target,
                new_target=target_step,
            )
        if new_paths != step.paths:
            graph.upsert(step.model_copy(update={"paths": new_paths}))

    return redirects
