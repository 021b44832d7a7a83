"""Pydantic model for one story step in the interchange format.

The backend and the LLM exchange stories as a JSON array of steps::

    [
      {"step": 1, "desc": "...", "options": ["A", "B"], "paths": [2, 3]},
      {"step": 2, "desc": "...", "options": ["Win"], "paths": [1]}
    ]

The schema checks field presence and types only. Structural rules
(options/paths arity, option count, path targets) are reported by
``avventura.graph.validation`` so a malformed-but-typed story can still be
loaded, inspected, and repaired.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr


class Step(BaseModel):
    """One narrative beat with its choices."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    step: Annotated[StrictInt, Field(ge=1, description="Unique step number within a story")]
    desc: StrictStr = Field(
        min_length=1,
        validation_alias=AliasChoices("desc", "story"),
        description="Narrative text shown to the player",
    )
    options: list[StrictStr] = Field(description="Player-visible choice labels")
    paths: list[StrictInt] = Field(description="Step reached by each option, by index")

    @property
    def is_ending(self) -> bool:
        """True for a story ending (exactly one option)."""
        return len(self.options) == 1

    def to_dict(self) -> dict[str, Any]:
        """Return the interchange form (exactly four keys)."""
        return {
            "step": self.step,
            "desc": self.desc,
            "options": list(self.options),
            "paths": list(self.paths),
        }
