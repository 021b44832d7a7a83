"""Tests for the in-memory StoryGraph."""

from __future__ import annotations

import json
from typing import Any

import pytest

from avventura.graph import DuplicateStepError, SchemaError, StepNotFoundError, StoryGraph
from avventura.models import Step


class TestLoad:
    """StoryGraph.load and friends."""

    def test_round_trip_as_set(self, jade_island_steps: list[dict[str, Any]]) -> None:
        """Serializing a loaded graph yields the same steps, order aside."""
        reversed_input = list(reversed(jade_island_steps))
        graph = StoryGraph.load(reversed_input)

        out = graph.to_dicts()
        assert sorted(json.dumps(d, sort_keys=True) for d in out) == sorted(
            json.dumps(d, sort_keys=True) for d in jade_island_steps
        )

    def test_duplicate_step_numbers_rejected(self) -> None:
        steps = [
            {"step": 1, "desc": "a", "options": ["x"], "paths": [2]},
            {"step": 2, "desc": "b", "options": ["y"], "paths": [1]},
            {"step": 2, "desc": "c", "options": ["z"], "paths": [1]},
        ]
        with pytest.raises(DuplicateStepError) as exc_info:
            StoryGraph.load(steps)

        assert exc_info.value.step_numbers == [2]

    def test_every_duplicate_reported(self) -> None:
        steps = [
            {"step": n, "desc": "x", "options": ["a"], "paths": [1]} for n in (3, 1, 3, 1, 2)
        ]
        with pytest.raises(DuplicateStepError) as exc_info:
            StoryGraph.load(steps)

        assert exc_info.value.step_numbers == [1, 3]
        assert "1, 3" in str(exc_info.value)

    def test_accepts_step_instances(self) -> None:
        graph = StoryGraph.load([Step(step=1, desc="x", options=["a"], paths=[1])])
        assert len(graph) == 1

    def test_malformed_input_raises_schema_error(self) -> None:
        with pytest.raises(SchemaError):
            StoryGraph.load([{"step": 1, "desc": "x"}])

    def test_from_json(self, jade_island_steps: list[dict[str, Any]]) -> None:
        graph = StoryGraph.from_json(json.dumps(jade_island_steps), start_step=2)
        assert len(graph) == 5
        assert graph.start_step == 2

    def test_from_json_invalid(self) -> None:
        with pytest.raises(SchemaError):
            StoryGraph.from_json("not json")

    def test_empty(self) -> None:
        graph = StoryGraph.empty()
        assert len(graph) == 0
        assert graph.serialize() == []
        assert graph.start_step == 1


class TestAccess:
    """Lookup and adjacency."""

    def test_get_missing_returns_none(self, jade_island: StoryGraph) -> None:
        assert jade_island.get(99) is None
        assert jade_island.get(1) is not None

    def test_require_missing_raises(self, jade_island: StoryGraph) -> None:
        with pytest.raises(StepNotFoundError) as exc_info:
            jade_island.require(42, context="lookup")

        assert exc_info.value.step_number == 42
        assert exc_info.value.available == [1, 2, 3, 4, 5]
        assert "lookup" in str(exc_info.value)

    def test_all_step_numbers(self, jade_island: StoryGraph) -> None:
        assert jade_island.all_step_numbers() == {1, 2, 3, 4, 5}

    def test_incoming(self, jade_island: StoryGraph) -> None:
        incoming = jade_island.incoming()
        assert incoming[1] == {4, 5}
        assert incoming[2] == {1, 3}
        assert incoming[5] == {2, 3}

    def test_incoming_ignores_self_loops_and_missing(self) -> None:
        graph = StoryGraph.load(
            [
                {"step": 1, "desc": "a", "options": ["stay", "go"], "paths": [1, 9]},
            ]
        )
        assert graph.incoming() == {1: set()}

    def test_container_protocol(self, jade_island: StoryGraph) -> None:
        assert 3 in jade_island
        assert 9 not in jade_island
        assert list(jade_island) == [1, 2, 3, 4, 5]
        assert repr(jade_island) == "StoryGraph(steps=5, start_step=1)"


class TestMutation:
    """upsert, remove and copy."""

    def test_upsert_replaces(self, jade_island: StoryGraph) -> None:
        replacement = Step(step=2, desc="A new jungle", options=["Back"], paths=[1])
        count = jade_island.upsert(replacement)

        assert count == 5
        assert jade_island.require(2).desc == "A new jungle"

    def test_upsert_inserts(self, jade_island: StoryGraph) -> None:
        count = jade_island.upsert(Step(step=6, desc="New", options=["Back"], paths=[1]))
        assert count == 6
        assert 6 in jade_island

    def test_remove(self, jade_island: StoryGraph) -> None:
        removed = jade_island.remove(4)
        assert removed.step == 4
        assert 4 not in jade_island
        # Step 2 still points at 4; that is for the validator to report
        assert jade_island.require(2).paths == [4, 5]

    def test_remove_missing(self, jade_island: StoryGraph) -> None:
        with pytest.raises(StepNotFoundError):
            jade_island.remove(99)

    def test_copy_is_independent(self, jade_island: StoryGraph) -> None:
        clone = jade_island.copy()
        clone.upsert(Step(step=6, desc="New", options=["Back"], paths=[1]))
        clone.remove(1)

        assert 6 not in jade_island
        assert 1 in jade_island
        assert clone.start_step == jade_island.start_step


class TestSerialisation:
    """Ascending output."""

    def test_serialize_ascending(self) -> None:
        graph = StoryGraph.load(
            [{"step": n, "desc": "x", "options": ["a"], "paths": [1]} for n in (7, 1, 4)]
        )
        assert [s.step for s in graph.serialize()] == [1, 4, 7]

    def test_to_json_is_interchange(self, jade_island: StoryGraph) -> None:
        data = json.loads(jade_island.to_json())
        assert data[0] == {
            "step": 1,
            "desc": "You wake on a beach of black sand.",
            "options": ["Explore the jungle", "Walk the shore"],
            "paths": [2, 3],
        }
