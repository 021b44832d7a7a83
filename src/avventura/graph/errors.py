"""Story graph error types.

Load-time errors (schema, duplicates, missing steps) are raised directly.
Structural defects found by the validator live in ``validation_types`` and
derive from the same ``StoryGraphError`` base, so callers can catch the whole
family in one place.

Every error can format itself as actionable feedback for an LLM retry loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from avventura.graph.validation_types import StoryDefect


class StoryGraphError(Exception):
    """Base class for every story graph error."""

    def to_llm_feedback(self) -> str:
        """Format the error as actionable feedback for an LLM retry."""
        return f"## Error\n\n{self}"


@dataclass
class SchemaError(StoryGraphError):
    """Raised when input does not match the step interchange format.

    Attributes:
        problems: One ``location: message`` entry per problem found.
        raw: Excerpt of the offending input, when it came from text.
    """

    problems: list[str]
    raw: str = ""

    def __post_init__(self) -> None:
        if len(self.problems) == 1:
            msg = f"Invalid story data: {self.problems[0]}"
        else:
            msg = f"Invalid story data ({len(self.problems)} problems): " + "; ".join(
                self.problems[:5]
            )
        super().__init__(msg)

    def to_llm_feedback(self) -> str:
        lines = [
            "## Format Error: Invalid Story JSON",
            "",
            "**Problem**: The output is not a valid JSON array of steps.",
            "",
        ]
        for problem in self.problems[:10]:
            lines.append(f"  - {problem}")
        if len(self.problems) > 10:
            lines.append(f"  - ... and {len(self.problems) - 10} more")
        lines.extend(
            [
                "",
                "**Expected**: `[{\"step\": 1, \"desc\": \"...\", "
                '"options": ["..."], "paths": [2]}, ...]`',
                "Output ONLY the JSON array.",
            ]
        )
        return "\n".join(lines)


@dataclass
class DuplicateStepError(StoryGraphError):
    """Raised when two input steps share a step number.

    Bulk loads are rejected wholesale; use ``StoryGraph.upsert`` to replace a
    single step on purpose.

    Attributes:
        step_numbers: Every step number that occurred more than once.
    """

    step_numbers: list[int]

    def __post_init__(self) -> None:
        numbers = ", ".join(str(n) for n in self.step_numbers)
        super().__init__(f"Duplicate step number(s): {numbers}")

    def to_llm_feedback(self) -> str:
        numbers = ", ".join(f"`{n}`" for n in self.step_numbers)
        return f"""## Error: Duplicate Step Numbers

**Repeated numbers**: {numbers}

**Problem**: Every step must have a unique `step` number.

**Solution**: Renumber the repeated steps and update any `paths` that point to them.
"""


@dataclass
class StepNotFoundError(StoryGraphError):
    """Raised when a step number is not present in the graph.

    Attributes:
        step_number: The number that was looked up.
        available: Step numbers that do exist.
        context: Where the lookup happened.
    """

    step_number: int
    available: list[int] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Step {self.step_number} not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def to_llm_feedback(self) -> str:
        lines = [
            "## Reference Error: Step Not Found",
            "",
            f"**You referenced**: step `{self.step_number}`",
        ]
        if self.context:
            lines.append(f"**Context**: {self.context}")
        if self.available:
            lines.append("")
            lines.append("**Existing steps**: " + ", ".join(str(n) for n in self.available[:30]))
            if len(self.available) > 30:
                lines.append(f"  ... and {len(self.available) - 30} more")
        return "\n".join(lines)


@dataclass
class StoryValidationError(StoryGraphError):
    """Raised when a graph with fatal defects is about to be persisted.

    Attributes:
        defects: The fatal defects that blocked the operation.
    """

    defects: list[StoryDefect]

    def __post_init__(self) -> None:
        super().__init__(f"Story graph has {len(self.defects)} fatal defect(s)")

    def __str__(self) -> str:
        lines = [f"Story graph has {len(self.defects)} fatal defect(s):"]
        for defect in self.defects[:5]:
            lines.append(f"  - {defect}")
        if len(self.defects) > 5:
            lines.append(f"  - ... and {len(self.defects) - 5} more")
        return "\n".join(lines)

    def to_llm_feedback(self) -> str:
        return "\n\n".join(d.to_llm_feedback() for d in self.defects)
