"""Graph package - the story graph model.

A story is a directed graph of numbered steps. Options on a step are edges to
other steps. This package holds the in-memory model, its structural checks,
and the authoring helpers that pick new step numbers.
"""

from avventura.graph.errors import (
    DuplicateStepError,
    SchemaError,
    StepNotFoundError,
    StoryGraphError,
    StoryValidationError,
)
from avventura.graph.interchange import dump_steps, parse_steps, parse_steps_json
from avventura.graph.story_graph import DEFAULT_START_STEP, StoryGraph
from avventura.graph.suggest import (
    continuation_start,
    next_step_number,
    suggest_paths,
    suggest_paths_for,
)
from avventura.graph.validation import (
    PathRedirect,
    redirect_dangling_paths,
    validate_story_graph,
)
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

__all__ = [
    "DEFAULT_START_STEP",
    "ArityMismatchError",
    "DanglingPathError",
    "DuplicateStepError",
    "EndingNotLoopedError",
    "MissingStartStepError",
    "OptionCountError",
    "PathRedirect",
    "SchemaError",
    "StepNotFoundError",
    "StoryDefect",
    "StoryGraph",
    "StoryGraphError",
    "StoryValidationError",
    "UnreachableStepWarning",
    "ValidationReport",
    "continuation_start",
    "dump_steps",
    "next_step_number",
    "parse_steps",
    "parse_steps_json",
    "redirect_dangling_paths",
    "suggest_paths",
    "suggest_paths_for",
    "validate_story_graph",
]
