"""Defect records and the report produced by story graph validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import ClassVar, Literal

from avventura.graph.errors import StoryGraphError, StoryValidationError

Severity = Literal["fatal", "warning"]


@dataclass
class StoryDefect(StoryGraphError):
    """A structural problem found in a story graph.

    Defects are reported, not raised, by the validator. They are still
    exceptions so a caller can raise one directly when it wants to reject.

    Attributes:
        step: Number of the step the defect concerns.
    """

    code: ClassVar[str] = "defect"
    severity: ClassVar[Severity] = "fatal"

    step: int

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"Step {self.step}: structural defect"

    @property
    def is_fatal(self) -> bool:
        return self.severity == "fatal"


@dataclass
class ArityMismatchError(StoryDefect):
    """Options and paths of a step have different lengths."""

    code: ClassVar[str] = "arity_mismatch"

    option_count: int
    path_count: int

    def _format_message(self) -> str:
        return (
            f"Step {self.step}: {self.option_count} option(s) but {self.path_count} path(s)"
        )

    def to_llm_feedback(self) -> str:
        return f"""## Error: Options/Paths Mismatch

**Step**: `{self.step}`
**Options**: {self.option_count}
**Paths**: {self.path_count}

**Problem**: `paths[i]` is the step reached by choosing `options[i]`, so both arrays must have the same length.
"""


@dataclass
class OptionCountError(StoryDefect):
    """A step has no options or more than three."""

    code: ClassVar[str] = "option_count"

    count: int

    def _format_message(self) -> str:
        return f"Step {self.step}: {self.count} option(s), expected 1 to 3"

    def to_llm_feedback(self) -> str:
        return f"""## Error: Wrong Number of Options

**Step**: `{self.step}` has {self.count} option(s).

**Rules**:
- Regular steps have 2 or 3 options
- Story endings have exactly 1 option
"""


@dataclass
class DanglingPathError(StoryDefect):
    """A path points at a step number that does not exist.

    Attributes:
        index: Position of the path in the step's ``paths``.
        target: The missing step number.
        available: Step numbers that do exist.
    """

    code: ClassVar[str] = "dangling_path"

    index: int
    target: int
    available: list[int] = field(default_factory=list)

    def _format_message(self) -> str:
        return f"Step {self.step}: path {self.index} targets missing step {self.target}"

    def _get_suggestions(self) -> list[int]:
        """Nearby existing numbers that might have been meant."""
        matches = get_close_matches(
            str(self.target), [str(n) for n in self.available], n=3, cutoff=0.5
        )
        return [int(m) for m in matches]

    def to_llm_feedback(self) -> str:
        lines = [
            "## Reference Error: Path To Missing Step",
            "",
            f"**Step**: `{self.step}`, path #{self.index}",
            f"**You referenced**: step `{self.target}`",
            "",
            "**Problem**: Every path number must be the `step` number of an existing step.",
            "",
        ]
        suggestions = self._get_suggestions()
        if suggestions:
            lines.append("**Did you mean one of these?** " + ", ".join(f"`{s}`" for s in suggestions))
            lines.append("")
        lines.append("Either add the missing step or change the path to `1` (return to start).")
        return "\n".join(lines)


@dataclass
class MissingStartStepError(StoryDefect):
    """The designated start step is absent from a non-empty graph."""

    code: ClassVar[str] = "missing_start"
    severity: ClassVar[Severity] = "warning"

    def _format_message(self) -> str:
        return f"Start step {self.step} does not exist"

    def to_llm_feedback(self) -> str:
        return f"""## Warning: Missing Start Step

**Problem**: The story must contain step `{self.step}`; players begin there and every ending loops back to it.
"""


@dataclass
class EndingNotLoopedError(StoryDefect):
    """An ending's single path does not lead back to the start step."""

    code: ClassVar[str] = "ending_not_looped"
    severity: ClassVar[Severity] = "warning"

    target: int
    start_step: int = 1

    def _format_message(self) -> str:
        return (
            f"Step {self.step}: ending leads to step {self.target}, "
            f"expected start step {self.start_step}"
        )

    def to_llm_feedback(self) -> str:
        return f"""## Warning: Ending Does Not Loop

**Step**: `{self.step}` has a single option leading to `{self.target}`.

**Convention**: A story ending has exactly one option and `paths: [{self.start_step}]`.
"""


@dataclass
class UnreachableStepWarning(StoryDefect):
    """No other step has a path to this step."""

    code: ClassVar[str] = "unreachable"
    severity: ClassVar[Severity] = "warning"

    def _format_message(self) -> str:
        return f"Step {self.step}: no other step leads here"

    def to_llm_feedback(self) -> str:
        return f"""## Warning: Unreachable Step

**Step**: `{self.step}` is not the target of any other step's paths.

Add a path to it from an earlier step, or remove it.
"""


@dataclass
class ValidationReport:
    """Ordered defects found by validation.

    Attributes:
        defects: Defects in the order the checks produced them.
    """

    defects: list[StoryDefect] = field(default_factory=list)

    @property
    def fatal(self) -> list[StoryDefect]:
        return [d for d in self.defects if d.severity == "fatal"]

    @property
    def warnings(self) -> list[StoryDefect]:
        return [d for d in self.defects if d.severity == "warning"]

    @property
    def has_fatal(self) -> bool:
        """True if any defect blocks persistence."""
        return any(d.severity == "fatal" for d in self.defects)

    @property
    def has_warnings(self) -> bool:
        return any(d.severity == "warning" for d in self.defects)

    @property
    def is_valid(self) -> bool:
        return not self.has_fatal

    @property
    def summary(self) -> str:
        """Human-readable summary, e.g. ``2 fatal, 1 warnings``."""
        if not self.defects:
            return "no defects"
        parts: list[str] = []
        if self.fatal:
            parts.append(f"{len(self.fatal)} fatal")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        return ", ".join(parts)

    def for_step(self, step: int) -> list[StoryDefect]:
        """Return the defects that concern *step*."""
        return [d for d in self.defects if d.step == step]

    def raise_for_fatal(self) -> None:
        """Raise StoryValidationError if any defect is fatal."""
        fatal = self.fatal
        if fatal:
            raise StoryValidationError(fatal)
