"""Conversion between decoded interchange JSON and ``Step`` models."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from avventura.graph.errors import SchemaError
from avventura.models.step import Step

_STEP_LIST = TypeAdapter(list[Step])


def _format_validation_errors(e: ValidationError) -> list[str]:
    problems = []
    for error in e.errors():
        loc = ".".join(str(part) for part in error["loc"])
        msg = error["msg"]
        problems.append(f"{loc}: {msg}" if loc else msg)
    return problems


def parse_steps(data: object) -> list[Step]:
    """Validate a decoded JSON value as a list of steps.

    Args:
        data: Result of ``json.loads`` on the interchange text, or an
            iterable of ``Step`` instances and raw dicts.

    Returns:
        Parsed steps in input order.

    Raises:
        SchemaError: If *data* is not a list of well-typed step objects.
    """
    if isinstance(data, (str, bytes, dict)) or not isinstance(data, Iterable):
        raise SchemaError([f"expected a JSON array of steps, got {type(data).__name__}"])

    items = list(data)
    if all(isinstance(item, Step) for item in items):
        return items

    raw = [item.to_dict() if isinstance(item, Step) else item for item in items]
    try:
        return _STEP_LIST.validate_python(raw)
    except ValidationError as e:
        raise SchemaError(_format_validation_errors(e)) from e


def parse_steps_json(text: str | bytes) -> list[Step]:
    """Decode interchange JSON text and validate it.

    Raises:
        SchemaError: If the text is not JSON or not a list of steps.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        excerpt = text[:200] if isinstance(text, str) else text[:200].decode(errors="replace")
        raise SchemaError([f"invalid JSON: {e}"], raw=excerpt) from e
    return parse_steps(data)


def dump_steps(steps: Iterable[Step]) -> list[dict[str, Any]]:
    """Convert steps to interchange dicts, preserving order."""
    return [s.to_dict() for s in steps]
