"""In-memory working copy of one story.

A story is a mapping from step number to ``Step``. The backend is the system
of record; a ``StoryGraph`` is built when an editor loads a story, mutated
while the author edits, serialised back out, and discarded.

Two ways in, deliberately different:
- ``load`` is a bulk import and rejects duplicate step numbers outright.
- ``upsert`` is a single-step edit and replaces an existing step on purpose.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import TYPE_CHECKING, Any

from avventura.graph.errors import DuplicateStepError, StepNotFoundError
from avventura.graph.interchange import dump_steps, parse_steps, parse_steps_json
from avventura.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from avventura.models.step import Step

log = get_logger(__name__)

DEFAULT_START_STEP = 1


class StoryGraph:
    """Steps of one story keyed by step number.

    Attributes:
        start_step: Step players begin at and endings loop back to.
    """

    def __init__(self, start_step: int = DEFAULT_START_STEP) -> None:
        self._steps: dict[int, Step] = {}
        self.start_step = start_step

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        steps: Iterable[Step | dict[str, Any]],
        *,
        start_step: int = DEFAULT_START_STEP,
    ) -> StoryGraph:
        """Build a graph from a flat sequence of steps.

        Args:
            steps: ``Step`` instances or raw interchange dicts.
            start_step: Designated start step number.

        Returns:
            New graph holding every step.

        Raises:
            SchemaError: If raw input does not match the interchange format.
            DuplicateStepError: If two entries share a step number. No
                partial graph is produced.
        """
        parsed = parse_steps(steps)

        counts = Counter(s.step for s in parsed)
        duplicates = sorted(n for n, c in counts.items() if c > 1)
        if duplicates:
            log.warning("duplicate_steps_rejected", step_numbers=duplicates)
            raise DuplicateStepError(duplicates)

        graph = cls(start_step=start_step)
        for s in parsed:
            graph._steps[s.step] = s
        log.debug("story_graph_loaded", steps=len(graph))
        return graph

    @classmethod
    def from_json(cls, text: str | bytes, *, start_step: int = DEFAULT_START_STEP) -> StoryGraph:
        """Build a graph from interchange JSON text.

        Raises:
            SchemaError: If the text is not a JSON array of steps.
            DuplicateStepError: If two entries share a step number.
        """
        return cls.load(parse_steps_json(text), start_step=start_step)

    @classmethod
    def empty(cls, *, start_step: int = DEFAULT_START_STEP) -> StoryGraph:
        return cls(start_step=start_step)

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def get(self, step_number: int) -> Step | None:
        """Return the step with this number, or None."""
        return self._steps.get(step_number)

    def require(self, step_number: int, context: str = "") -> Step:
        """Return the step with this number.

        Raises:
            StepNotFoundError: If the step does not exist.
        """
        step = self._steps.get(step_number)
        if step is None:
            raise StepNotFoundError(step_number, sorted(self._steps), context)
        return step

    def all_step_numbers(self) -> set[int]:
        return set(self._steps)

    def incoming(self) -> dict[int, set[int]]:
        """Map each step number to the other steps that have a path to it.

        Self-loops are not counted. Targets that do not exist are omitted.
        """
        result: dict[int, set[int]] = {n: set() for n in self._steps}
        for number, step in self._steps.items():
            for target in step.paths:
                if target != number and target in result:
                    result[target].add(number)
        return result

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def upsert(self, step: Step) -> int:
        """Insert or replace the entry for ``step.step``.

        Returns:
            Number of steps in the graph afterwards.
        """
        if step.step in self._steps:
            log.debug("step_replaced", step=step.step)
        else:
            log.debug("step_inserted", step=step.step)
        self._steps[step.step] = step
        return len(self._steps)

    def remove(self, step_number: int) -> Step:
        """Delete a step and return it.

        Paths elsewhere that pointed at it are left alone; validation will
        report them as dangling.

        Raises:
            StepNotFoundError: If the step does not exist.
        """
        step = self.require(step_number, context="remove")
        del self._steps[step_number]
        log.debug("step_removed", step=step_number)
        return step

    def copy(self) -> StoryGraph:
        """Return an independent copy (steps are immutable-by-convention)."""
        clone = StoryGraph(start_step=self.start_step)
        clone._steps = {n: s.model_copy(deep=True) for n, s in self._steps.items()}
        return clone

    # -------------------------------------------------------------------------
    # Serialisation
    # -------------------------------------------------------------------------

    def serialize(self) -> list[Step]:
        """Return the steps in ascending step-number order."""
        return [self._steps[n] for n in sorted(self._steps)]

    def to_dicts(self) -> list[dict[str, Any]]:
        """Return the interchange form, ascending by step number."""
        return dump_steps(self.serialize())

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dicts(), indent=indent, ensure_ascii=False)

    # -------------------------------------------------------------------------
    # Container protocol
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_number: object) -> bool:
        return step_number in self._steps

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._steps))

    def __repr__(self) -> str:
        return f"StoryGraph(steps={len(self._steps)}, start_step={self.start_step})"
